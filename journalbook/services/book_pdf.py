# journalbook/services/book_pdf.py
"""Paginated rendering of a Book with fpdf2.

Page layout rules:
  * page 1 holds only the title and the author;
  * the prologue, when present, starts on a new page;
  * every chapter starts on a new page, and nothing follows the last one;
  * every physical page, overflow pages included, carries its 1-based
    number centered near the bottom margin.

Text is set in the TrueType font named by ``BOOK_FONT_PATH`` so any script
the font covers survives export. Without one, fpdf2's core Times is used,
which only covers latin-1; other characters come out as ``?``.
"""
from __future__ import annotations
import logging
from pathlib import Path
from typing import List, Optional

from fpdf import FPDF

from journalbook.services.book import Book
from journalbook.settings.config import settings

logger = logging.getLogger(__name__)

CORE_FONT = "Times"
EMBEDDED_FONT = "BookFont"
BOTTOM_MARGIN = 20

_PUNCT = str.maketrans({
    "\u2018": "'", "\u2019": "'", "\u201c": '"', "\u201d": '"',
    "\u2013": "-", "\u2014": "-", "\u2026": "...", "\u00a0": " ",
})


class BookPDF(FPDF):
    def __init__(self, *args, font_path: Optional[str] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.stamped_pages: List[int] = []
        self.replaced_chars = 0
        self.book_font = CORE_FONT
        if font_path:
            # one face for every style; bold and italic look like regular
            for style in ("", "B", "I"):
                self.add_font(EMBEDDED_FONT, style, font_path)
            self.book_font = EMBEDDED_FONT

    @property
    def embeds_font(self) -> bool:
        return self.book_font == EMBEDDED_FONT

    def clean(self, text: Optional[str]) -> str:
        text = text or ""
        if self.embeds_font:
            return text
        text = text.translate(_PUNCT)
        self.replaced_chars += sum(1 for ch in text if ord(ch) > 0xFF)
        return text.encode("latin-1", "replace").decode("latin-1")

    def footer(self):
        self.set_y(-15)
        self.set_font(self.book_font, "", 10)
        self.cell(0, 10, str(self.page_no()), align="C")
        self.stamped_pages.append(self.page_no())


def _paragraphs(pdf: BookPDF, text: str) -> None:
    pdf.set_font(pdf.book_font, "", 12)
    for para in [p.strip() for p in (text or "").split("\n\n") if p.strip()]:
        pdf.multi_cell(0, 6, pdf.clean(para), align="J", new_x="LMARGIN", new_y="NEXT")
        pdf.ln(4)


def _heading(pdf: BookPDF, title: str) -> None:
    pdf.set_font(pdf.book_font, "B", 18)
    pdf.cell(0, 14, pdf.clean(title), align="C", new_x="LMARGIN", new_y="NEXT")
    pdf.ln(8)


def _usable_font(font_path: Optional[str]) -> Optional[str]:
    if font_path and not Path(font_path).is_file():
        logger.warning("BOOK_FONT_PATH %s does not exist; using latin-1 core fonts", font_path)
        return None
    return font_path or None


def build_pdf(book: Book, font_path: Optional[str] = None) -> BookPDF:
    """Lay out ``book``; ``font_path`` defaults to ``BOOK_FONT_PATH``."""
    pdf = BookPDF(format="A4", font_path=_usable_font(font_path or settings.BOOK_FONT_PATH))
    pdf.set_auto_page_break(auto=True, margin=BOTTOM_MARGIN)
    pdf.set_title(pdf.clean(book.title))
    pdf.set_author(pdf.clean(book.author))

    # Front matter
    pdf.add_page()
    pdf.set_y(90)
    pdf.set_font(pdf.book_font, "B", 28)
    pdf.multi_cell(0, 14, pdf.clean(book.title), align="C", new_x="LMARGIN", new_y="NEXT")
    pdf.ln(6)
    pdf.set_font(pdf.book_font, "I", 16)
    pdf.cell(0, 10, pdf.clean(book.author), align="C", new_x="LMARGIN", new_y="NEXT")

    if book.prologue:
        pdf.add_page()
        _heading(pdf, "Prologue")
        _paragraphs(pdf, book.prologue)

    for ch in book.chapters:
        pdf.add_page()
        _heading(pdf, ch.title)
        _paragraphs(pdf, ch.text)

    if pdf.replaced_chars:
        logger.warning("PDF for %r lost %d characters outside latin-1; set BOOK_FONT_PATH to a Unicode TTF",
                       book.author, pdf.replaced_chars)
    return pdf


def render_pdf(book: Book, font_path: Optional[str] = None) -> bytes:
    return bytes(build_pdf(book, font_path).output())
