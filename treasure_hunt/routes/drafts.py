import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from treasure_hunt.auth_token import get_current_user
from treasure_hunt.database import get_db
from treasure_hunt.drafts import (
    HuntDraft,
    SQLDraftStore,
    clear_draft,
    load_draft,
    save_draft,
    to_create_payload,
    validate_hunt,
)
from treasure_hunt.models.user import User
from treasure_hunt.routes.hunts import created_response, create_hunt_with_clues
from treasure_hunt.schemas import HuntCreate

router = APIRouter(prefix="/hunts/drafts", tags=["Hunt drafts"])
logger = logging.getLogger(__name__)


@router.get("/mine")
async def get_my_draft(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    draft = await load_draft(SQLDraftStore(db), user.id)
    if draft is None:
        raise HTTPException(status_code=404, detail="No saved draft")
    return {"draft": draft.model_dump(mode="json")}


@router.put("/mine")
async def save_my_draft(
    draft: HuntDraft,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    payload = await save_draft(SQLDraftStore(db), user.id, draft)
    await db.commit()
    return {"message": "Draft saved", "last_saved": payload["last_saved"]}


@router.delete("/mine")
async def delete_my_draft(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    removed = await clear_draft(SQLDraftStore(db), user.id)
    await db.commit()
    return {"message": "Draft cleared" if removed else "No saved draft"}


@router.post("/mine/publish", status_code=status.HTTP_201_CREATED)
async def publish_my_draft(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    store = SQLDraftStore(db)
    draft = await load_draft(store, user.id)
    if draft is None:
        raise HTTPException(status_code=404, detail="No saved draft")

    errors = validate_hunt(draft)
    if errors:
        raise HTTPException(status_code=400, detail={"message": "Draft is not ready to publish", "errors": errors})

    try:
        payload = HuntCreate.model_validate(to_create_payload(draft))
    except ValidationError as exc:
        messages = [
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        ]
        raise HTTPException(status_code=400, detail={"message": "Draft is not ready to publish", "errors": messages})

    try:
        hunt = await create_hunt_with_clues(db, user.id, payload)
        await clear_draft(store, user.id)
        await db.commit()
    except Exception:
        await db.rollback()
        logger.exception("Publish draft error")
        raise HTTPException(status_code=500, detail="Internal server error")

    logger.info("User %s published draft as hunt %s", user.id, hunt.id)
    return created_response(hunt)
