# journalbook/services/profiles.py
from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from journalbook.errors import NoContent, NotFound, StoreError
from journalbook.llm_client import NarrativeGenerator, profile_brief, write_intro
from journalbook.models import Profile

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("name", "pronoun", "place", "life_phase", "daily_life", "aspirations")


async def get_profile(db: AsyncSession, user_id: str) -> Optional[Profile]:
    try:
        return (await db.execute(select(Profile).where(Profile.user_id == user_id))).scalars().first()
    except SQLAlchemyError as exc:
        raise StoreError("get_profile") from exc


def _apply(prof: Profile, fields: Dict[str, Any]) -> None:
    for key in PROFILE_FIELDS:
        if key in fields:
            value = fields[key]
            setattr(prof, key, (value.strip() or None) if isinstance(value, str) else value)


async def upsert_profile(db: AsyncSession, user_id: str, fields: Dict[str, Any]) -> Profile:
    """Create or overwrite the user's profile. ``generated_intro`` is left alone."""
    try:
        prof = await get_profile(db, user_id)
        if not prof:
            prof = Profile(user_id=user_id)
            _apply(prof, fields)
            db.add(prof)
            try:
                await db.commit()
                return prof
            except IntegrityError:
                await db.rollback()
                prof = await get_profile(db, user_id)
                if prof is None:
                    raise
        _apply(prof, fields)
        await db.commit()
        return prof
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("upsert_profile failed for user=%s", user_id)
        raise StoreError("upsert_profile") from exc


async def list_profile_user_ids(db: AsyncSession) -> List[str]:
    """Every user the weekly automation knows about."""
    try:
        rows = await db.execute(select(Profile.user_id).order_by(Profile.user_id.asc()))
    except SQLAlchemyError as exc:
        raise StoreError("list_profile_user_ids") from exc
    return list(rows.scalars().all())


async def generate_intro(db: AsyncSession, generator: NarrativeGenerator, user_id: str) -> Tuple[str, str]:
    """Write (or rewrite) the book prologue from the profile fields."""
    prof = await get_profile(db, user_id)
    if not prof:
        raise NotFound(f"profile for {user_id} not found", public_message="Profile not found")
    if not profile_brief(prof):
        # no facts to write from
        raise NoContent(f"profile for {user_id} has no details", public_message="Profile is empty")

    intro = await write_intro(generator, prof)

    try:
        prof.generated_intro = intro
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("saving generated intro failed for user=%s", user_id)
        raise StoreError("generate_intro") from exc
    logger.info("Generated intro for user=%s (%d chars)", user_id, len(intro))
    return intro, "generated"
