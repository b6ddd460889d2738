from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from journalbook.database import get_db
from journalbook.errors import Unauthorized
from journalbook.schemas import CodeRequest, CodeVerify, DeviceLogin, TokenRead
from journalbook.security import issue_token
from journalbook.services.login_codes import LoginCodeStore, normalize_email
from journalbook.services.mailer import send_login_code_email

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)


async def get_login_code_store(db: AsyncSession = Depends(get_db)) -> LoginCodeStore:
    return LoginCodeStore(db)


@router.post("/device", response_model=TokenRead)
async def device_login(body: DeviceLogin):
    return TokenRead(token=issue_token(body.device_id, method="device"), user_id=body.device_id)


@router.post("/email/request-code")
async def request_code(body: CodeRequest, store: LoginCodeStore = Depends(get_login_code_store)):
    email = normalize_email(body.email)
    code = await store.issue(email)
    if not await send_login_code_email(email, code):
        logger.warning("Login code email to %s was not delivered", email)
    # same answer whether or not delivery worked, so addresses can't be probed
    return {"sent": True}


@router.post("/email/verify", response_model=TokenRead)
async def verify_code(body: CodeVerify, store: LoginCodeStore = Depends(get_login_code_store)):
    email = normalize_email(body.email)
    if not await store.consume(email, body.code):
        raise Unauthorized(f"bad or expired code for {email}", public_message="Invalid or expired code")
    return TokenRead(token=issue_token(email, method="email"), user_id=email)
