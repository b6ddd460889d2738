# journalbook/services/book.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from journalbook.errors import NoContent
from journalbook.services.chapter_compile import list_chapters
from journalbook.services.profiles import get_profile
from journalbook.settings.config import settings


@dataclass
class BookChapter:
    number: int
    title: str
    text: str


@dataclass
class Book:
    title: str
    author: str
    prologue: Optional[str] = None
    chapters: List[BookChapter] = field(default_factory=list)

    @property
    def chapter_count(self) -> int:
        return len(self.chapters)


async def load_book(db: AsyncSession, user_id: str) -> Book:
    """Collect the prologue and every chapter in week order.

    Raises ``NoContent`` when the user has no chapters yet, prologue or not.
    """
    profile = await get_profile(db, user_id)
    chapters = await list_chapters(db, user_id)
    if not chapters:
        raise NoContent(f"no chapters for {user_id}", public_message="No chapters yet")

    prologue = None
    if profile and (profile.generated_intro or "").strip():
        prologue = profile.generated_intro.strip()
    author = ((profile.name or "").strip() if profile else "") or settings.BOOK_DEFAULT_AUTHOR

    return Book(
        title=settings.BOOK_TITLE,
        author=author,
        prologue=prologue,
        chapters=[
            BookChapter(number=i, title=f"Chapter {i}", text=(ch.content or "").strip())
            for i, ch in enumerate(chapters, start=1)
        ],
    )


def render_text(book: Book) -> str:
    parts = [book.title, f"by {book.author}"]
    if book.prologue:
        parts += ["Prologue", book.prologue]
    for ch in book.chapters:
        parts += [ch.title, ch.text]
    return "\n\n".join(parts) + "\n"


async def assemble_book(db: AsyncSession, user_id: str) -> tuple[str, int]:
    book = await load_book(db, user_id)
    return render_text(book), book.chapter_count
