import asyncio
import logging

from sqlalchemy import select

import treasure_hunt.database as database
from treasure_hunt.models.clue import Clue
from treasure_hunt.models.hunt import Hunt
from treasure_hunt.models.user import User
from treasure_hunt.security import hash_password
from treasure_hunt.services.leaderboard import refresh_leaderboard

logger = logging.getLogger("treasure_hunt.seed")

SAMPLE_PASSWORD = "password123"

USERS = [
    ("admin@example.com", "admin"),
    ("player1@example.com", "player1"),
    ("player2@example.com", "player2"),
]

SAMPLE_HUNT = {
    "title": "The Ancient Mystery",
    "description": "Embark on a journey through ancient riddles and puzzles. Test your wit and wisdom!",
    "difficulty_level": "medium",
    "estimated_duration": 30,
}

SAMPLE_CLUES = [
    (
        "The Silent Speaker",
        "I speak without a mouth and hear without ears. I have no body, but come alive with the wind. What am I?",
        "echo",
        [
            "Think about natural phenomena (-10 points)",
            "It bounces off mountains and valleys (-20 points)",
            "You can hear it calling back to you (-30 points)",
        ],
    ),
    (
        "The Time Keeper",
        "I have a face but no eyes, hands but no arms. I move without walking. What am I?",
        "clock",
        [
            "Found in every home and office (-10 points)",
            "It helps you stay punctual (-20 points)",
            "Tick tock, tick tock (-30 points)",
        ],
    ),
    (
        "The Final Challenge",
        "The more you take, the more you leave behind. What am I?",
        "footsteps",
        [
            "Think about movement (-10 points)",
            "They follow you everywhere you go (-20 points)",
            "Look down to see them (-30 points)",
        ],
    ),
]


async def _ensure_user(session, email: str, username: str, password_hash: str) -> User:
    user = (await session.execute(select(User).where(User.email == email))).scalar_one_or_none()
    if user is not None:
        return user
    user = User(email=email, username=username, password_hash=password_hash)
    session.add(user)
    await session.flush()
    logger.info("Created user: %s", username)
    return user


async def main() -> None:
    """Create tables and load sample users plus one public hunt."""

    await database.init_models()
    async with database.SessionLocal() as session:
        password_hash = hash_password(SAMPLE_PASSWORD)
        users = [await _ensure_user(session, email, username, password_hash) for email, username in USERS]

        existing = (
            await session.execute(select(Hunt.id).where(Hunt.title == SAMPLE_HUNT["title"]))
        ).first()
        if existing is None:
            hunt = Hunt(
                creator_id=users[0].id,
                is_public=True,
                total_clues=len(SAMPLE_CLUES),
                **SAMPLE_HUNT,
            )
            for sequence, (title, content, answer, hints) in enumerate(SAMPLE_CLUES, start=1):
                hunt.clues.append(
                    Clue(
                        sequence_order=sequence,
                        title=title,
                        content=content,
                        answer=answer,
                        hints=hints,
                        points_value=100,
                    )
                )
            session.add(hunt)
            logger.info("Created sample hunt: %s", SAMPLE_HUNT["title"])

        await refresh_leaderboard(session)
        await session.commit()
    logger.info("Database seeded successfully.")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    asyncio.run(main())
