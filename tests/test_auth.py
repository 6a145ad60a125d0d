import pytest
from fastapi import HTTPException

from treasure_hunt.auth_token import create_access_token, decode_user_id, get_current_user
from treasure_hunt.routes.auth import get_profile, login, register
from treasure_hunt.schemas import UserLogin, UserRegister
from treasure_hunt.security import hash_password, needs_rehash, verify_password


def test_password_hashing_roundtrip():
    hashed = hash_password("password123")
    assert hashed != "password123"
    assert verify_password("password123", hashed)
    assert not verify_password("wrong-password", hashed)
    assert not needs_rehash(hashed)


def test_missing_or_malformed_hashes_never_match():
    assert verify_password("password123", None) is False
    assert verify_password("password123", "not-a-hash") is False


def test_token_carries_user_id():
    token = create_access_token({"user_id": 42})
    assert decode_user_id(token) == 42


@pytest.mark.parametrize(
    "token",
    [
        "not-a-jwt",
        create_access_token({"user_id": 1}, expires_minutes=-1),
        create_access_token({"sub": "1"}),
    ],
)
def test_bad_tokens_are_forbidden(token):
    with pytest.raises(HTTPException) as exc:
        decode_user_id(token)
    assert exc.value.status_code == 403
    assert exc.value.detail == "Invalid or expired token"


@pytest.mark.parametrize(
    "values",
    [
        {"email": "not-an-email", "username": "player1", "password": "secret1"},
        {"email": "p@example.com", "username": "pl", "password": "secret1"},
        {"email": "p@example.com", "username": "player one", "password": "secret1"},
        {"email": "p@example.com", "username": "player1", "password": "short"},
    ],
)
def test_registration_payload_validation(values):
    with pytest.raises(ValueError):
        UserRegister(**values)


@pytest.mark.anyio
async def test_register_login_and_profile(session_factory):
    async with session_factory() as db:
        created = await register(
            user=UserRegister(email="player1@example.com", username="player1", password="password123"),
            db=db,
        )
        assert created["message"] == "User created successfully"
        assert created["user"]["username"] == "player1"
        assert "password_hash" not in created["user"]
        user_id = created["user"]["id"]
        assert decode_user_id(created["token"]) == user_id

        with pytest.raises(HTTPException) as duplicate:
            await register(
                user=UserRegister(email="other@example.com", username="player1", password="password123"),
                db=db,
            )
        assert duplicate.value.status_code == 400

        logged_in = await login(credentials=UserLogin(email="player1@example.com", password="password123"), db=db)
        assert logged_in["user"]["id"] == user_id

        with pytest.raises(HTTPException) as rejected:
            await login(credentials=UserLogin(email="player1@example.com", password="nope"), db=db)
        assert rejected.value.status_code == 401

        current = await get_current_user(token=logged_in["token"], db=db)
        profile = await get_profile(current_user=current, db=db)
        assert profile["user"]["stats"] == {"hunts_created": 0, "hunts_played": 0, "hunts_completed": 0}


@pytest.mark.anyio
async def test_current_user_requires_token(session_factory):
    async with session_factory() as db:
        with pytest.raises(HTTPException) as missing:
            await get_current_user(token=None, db=db)
        assert missing.value.status_code == 401
        assert missing.value.detail == "Access token required"

        with pytest.raises(HTTPException) as unknown:
            await get_current_user(token=create_access_token({"user_id": 999}), db=db)
        assert unknown.value.status_code == 401
