from __future__ import annotations

import io
import re

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from journalbook.background import run_sync
from journalbook.database import get_db
from journalbook.schemas import BookRead, ErrorMessage
from journalbook.security import require_path_user
from journalbook.services.book import load_book, render_text
from journalbook.services.book_pdf import render_pdf

router = APIRouter(prefix="/book", tags=["book"])


def _filename(user_id: str) -> str:
    safe = re.sub(r"[^A-Za-z0-9._-]+", "_", user_id).strip("_") or "book"
    return f"{safe}-book.pdf"


@router.get("/{userId}", response_model=BookRead, responses={400: {"model": ErrorMessage}})
async def book_text(
    user_id: str = Depends(require_path_user),
    db: AsyncSession = Depends(get_db),
):
    book = await load_book(db, user_id)
    return BookRead(book=render_text(book), chapter_count=book.chapter_count)


@router.get(
    "/{userId}/pdf",
    response_class=StreamingResponse,
    responses={200: {"content": {"application/pdf": {}}}, 400: {"model": ErrorMessage}},
)
async def book_pdf(
    user_id: str = Depends(require_path_user),
    db: AsyncSession = Depends(get_db),
):
    book = await load_book(db, user_id)
    # fpdf layout is CPU-bound; keep it off the event loop
    data = await run_sync(render_pdf, book)
    return StreamingResponse(
        io.BytesIO(data),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{_filename(user_id)}"'},
    )
