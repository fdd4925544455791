"""Page rendering through PyMuPDF."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from threading import RLock
from typing import Iterator

import pymupdf

from .exceptions import DocumentOpenError, PageRenderError, SourceNotFoundError

logger = logging.getLogger(__name__)

# PyMuPDF cannot write WebP, so WebP output is rendered to PNG first.
_RAW_FORMATS = {"jpeg": "jpeg", "png": "png", "webp": "png"}

# MuPDF is not thread-safe; every call into it, from any renderer, goes through this lock.
_MUPDF_LOCK = RLock()


def raw_format_for(image_format: str) -> str:
    return _RAW_FORMATS[image_format]


class PageRenderer:
    """
    Renders single PDF pages to encoded bitmaps.

    Pages are drawn without an alpha channel, so transparent page content is
    composited over a white background.

    Thread Safety:
        Several jobs may render at once from executor threads. All PyMuPDF
        calls (open, page count, render, encode, store shrink, close) are
        serialized on a process-wide lock, so pages of different jobs
        interleave but never render concurrently.

    Attributes:
        scale: Zoom factor relative to the 72 DPI PDF baseline
    """

    def __init__(self, scale: float = 1.5) -> None:
        self.scale = float(scale)
        self._matrix = pymupdf.Matrix(self.scale, self.scale)

    @contextmanager
    def open(self, source: Path) -> Iterator[pymupdf.Document]:
        """
        Open a PDF for rendering and close it when the block exits.

        The whole file is read into memory first, so replacing the file on
        disk (a re-upload under the same directory id) cannot affect a
        document that is already being converted.

        Raises:
            SourceNotFoundError: If the file disappears before it is read
            DocumentOpenError: With the parser's message if the file is not a readable PDF
        """
        try:
            data = source.read_bytes()
        except FileNotFoundError as exc:
            raise SourceNotFoundError(f"PDF file not found at path: {source}") from exc

        try:
            with _MUPDF_LOCK:
                document = pymupdf.open(stream=data, filetype="pdf")
        except Exception as exc:
            raise DocumentOpenError(str(exc)) from exc
        try:
            yield document
        finally:
            with _MUPDF_LOCK:
                document.close()

    def page_count(self, document: pymupdf.Document) -> int:
        with _MUPDF_LOCK:
            return document.page_count

    def render(self, document: pymupdf.Document, page_number: int, image_format: str) -> bytes:
        """
        Render one page (1-based) and encode it in the intermediate raw format.

        Raises:
            PageRenderError: If PyMuPDF fails on this page
        """
        with _MUPDF_LOCK:
            return self._render_page(document, page_number, image_format)

    def _render_page(self, document: pymupdf.Document, page_number: int, image_format: str) -> bytes:
        page = None
        pixmap = None
        try:
            page = document.load_page(page_number - 1)
            pixmap = page.get_pixmap(matrix=self._matrix, alpha=False)
            return pixmap.tobytes(output=raw_format_for(image_format))
        except Exception as exc:
            raise PageRenderError(page_number, str(exc)) from exc
        finally:
            del pixmap, page

    def release(self) -> None:
        """Drop MuPDF's cached page resources between pages."""
        with _MUPDF_LOCK:
            pymupdf.TOOLS.store_shrink(100)
