from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from journalbook.database import get_db
from journalbook.llm_client import NarrativeGenerator, get_generator
from journalbook.schemas import IntroRead, ProfileEnvelope, ProfileRead, ProfileUpsert
from journalbook.security import ensure_same_user, require_path_user, token_subject
from journalbook.services.profiles import PROFILE_FIELDS, generate_intro, get_profile, upsert_profile

router = APIRouter(prefix="/profile", tags=["profile"])


@router.post("", response_model=ProfileEnvelope)
async def save_profile(
    body: ProfileUpsert,
    subject: Optional[str] = Depends(token_subject),
    db: AsyncSession = Depends(get_db),
):
    ensure_same_user(subject, body.user_id)
    prof = await upsert_profile(db, body.user_id, body.model_dump(include=set(PROFILE_FIELDS)))
    return ProfileEnvelope(profile=ProfileRead.model_validate(prof))


@router.get("/{userId}", response_model=ProfileEnvelope)
async def read_profile(
    user_id: str = Depends(require_path_user),
    db: AsyncSession = Depends(get_db),
):
    prof = await get_profile(db, user_id)
    return ProfileEnvelope(profile=ProfileRead.model_validate(prof) if prof else None)


@router.post("/{userId}/generate-intro", response_model=IntroRead)
async def profile_intro(
    user_id: str = Depends(require_path_user),
    generator: NarrativeGenerator = Depends(get_generator),
    db: AsyncSession = Depends(get_db),
):
    intro, source = await generate_intro(db, generator, user_id)
    return IntroRead(intro=intro, source=source)
