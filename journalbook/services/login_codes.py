# journalbook/services/login_codes.py
"""One-time email passcodes.

Codes live in the ``login_code`` table so they survive restarts and are
visible to every instance. Only a passlib hash of the code is stored.
"""
from __future__ import annotations
import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional

from passlib.hash import pbkdf2_sha256
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from journalbook.errors import StoreError
from journalbook.models import LoginCode
from journalbook.settings.config import settings

logger = logging.getLogger(__name__)

CODE_DIGITS = 6


def _now() -> datetime:
    # naive UTC to match the expires_at column
    return datetime.utcnow()


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def new_code() -> str:
    return f"{secrets.randbelow(10 ** CODE_DIGITS):0{CODE_DIGITS}d}"


class LoginCodeStore:
    def __init__(self, db: AsyncSession, ttl_minutes: Optional[int] = None):
        self.db = db
        self.ttl = timedelta(minutes=ttl_minutes if ttl_minutes is not None else settings.LOGIN_CODE_TTL_MINUTES)

    async def issue(self, email: str) -> str:
        """Create a fresh code for ``email``, replacing any earlier one."""
        email = normalize_email(email)
        code = new_code()
        try:
            await self.db.execute(delete(LoginCode).where(LoginCode.email == email))
            self.db.add(LoginCode(
                email=email,
                code_hash=pbkdf2_sha256.hash(code),
                expires_at=_now() + self.ttl,
            ))
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            raise StoreError("issue_login_code") from exc
        logger.info("Login code issued for %s (expires in %s)", email, self.ttl)
        return code

    async def consume(self, email: str, code: str) -> bool:
        """True when ``code`` matches an unexpired code; the code is used up."""
        email = normalize_email(email)
        try:
            row = (await self.db.execute(select(LoginCode).where(LoginCode.email == email))).scalars().first()
            if not row:
                return False
            if row.expires_at < _now():
                await self.db.delete(row)
                await self.db.commit()
                return False
            if not pbkdf2_sha256.verify((code or "").strip(), row.code_hash):
                return False
            await self.db.delete(row)
            await self.db.commit()
            return True
        except SQLAlchemyError as exc:
            await self.db.rollback()
            raise StoreError("consume_login_code") from exc

    async def purge_expired(self) -> int:
        try:
            res = await self.db.execute(delete(LoginCode).where(LoginCode.expires_at < _now()))
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            raise StoreError("purge_login_codes") from exc
        return res.rowcount or 0
