from io import BytesIO
from pathlib import Path

import matplotlib
import pytest
from pypdf import PdfReader

from journalbook.services.book import Book, BookChapter
from journalbook.services.book_pdf import EMBEDDED_FONT, build_pdf, render_pdf


def _book(prologue=None, chapter_texts=("One short week.", "Another short week.")):
    return Book(
        title="My Story",
        author="Ada",
        prologue=prologue,
        chapters=[BookChapter(i, f"Chapter {i}", t) for i, t in enumerate(chapter_texts, start=1)],
    )


def test_pdf_bytes():
    data = render_pdf(_book())
    assert data.startswith(b"%PDF")


def test_title_page_then_one_page_per_short_chapter():
    pdf = build_pdf(_book())
    pdf.output()
    # title page + two chapters, no trailing blank page
    assert pdf.pages_count == 3
    assert pdf.stamped_pages == [1, 2, 3]


def test_prologue_gets_its_own_page():
    pdf = build_pdf(_book(prologue="Ada grew up by the sea."))
    pdf.output()
    assert pdf.pages_count == 4
    assert pdf.stamped_pages == [1, 2, 3, 4]


def test_overflow_pages_are_numbered_too():
    long_text = "\n\n".join(["All day long she walked along the shore and wrote. " * 12] * 30)
    pdf = build_pdf(_book(chapter_texts=(long_text, "Short.")))
    pdf.output()
    assert pdf.pages_count > 3
    assert pdf.stamped_pages == list(range(1, pdf.pages_count + 1))


def test_core_fonts_fall_back_to_latin1():
    data = render_pdf(_book(chapter_texts=("She said “hello” — then left… ☃",)))
    assert data.startswith(b"%PDF")
    pdf = build_pdf(_book(chapter_texts=("Сегодня",)))
    assert pdf.replaced_chars == len("Сегодня")


@pytest.fixture
def unicode_font():
    # DejaVu Sans ships inside matplotlib and covers Cyrillic and Greek
    return str(Path(matplotlib.get_data_path()) / "fonts" / "ttf" / "DejaVuSans.ttf")


def _pdf_text(data: bytes) -> str:
    return "\n".join(page.extract_text() for page in PdfReader(BytesIO(data)).pages)


def test_non_latin_text_survives_with_embedded_font(unicode_font):
    book = _book(prologue="Η Άντα μεγάλωσε δίπλα στη θάλασσα.",
                 chapter_texts=("Сегодня я гуляла в парке.", "She said “hello” — then left…"))
    book.author = "Ада"

    data = render_pdf(book, font_path=unicode_font)
    text = _pdf_text(data)

    assert "Сегодня" in text
    assert "парке" in text
    assert "θάλασσα" in text
    assert "Ада" in text
    assert "?" not in text


def test_embedded_font_keeps_the_page_rules(unicode_font):
    pdf = build_pdf(_book(prologue="Пролог."), font_path=unicode_font)
    pdf.output()
    assert pdf.book_font == EMBEDDED_FONT
    assert pdf.replaced_chars == 0
    assert pdf.pages_count == 4
    assert pdf.stamped_pages == [1, 2, 3, 4]


def test_font_path_comes_from_settings(unicode_font, monkeypatch):
    from journalbook.settings.config import settings

    monkeypatch.setattr(settings, "BOOK_FONT_PATH", unicode_font)
    assert build_pdf(_book()).book_font == EMBEDDED_FONT


def test_missing_font_file_uses_core_fonts(tmp_path):
    pdf = build_pdf(_book(), font_path=str(tmp_path / "nope.ttf"))
    assert pdf.book_font == "Times"
