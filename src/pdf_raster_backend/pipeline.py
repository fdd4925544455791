"""
Conversion pipeline: render, optimize and persist every page of one document.

Pages are processed strictly in ascending order on the calling thread. Each
page produces a :class:`PageResult`; failed pages are recorded on the job and
skipped, while errors that affect the whole document (missing source,
unreadable PDF, anything unexpected) fail the job and are re-raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional

import pymupdf

from .exceptions import PageRenderError, SourceNotFoundError
from .optimizer import ImageOptimizer
from .renderer import PageRenderer
from .utils import clean_directory_images, ensure_directory

if TYPE_CHECKING:
    from .job_manager import JobManager

logger = logging.getLogger(__name__)


@dataclass
class PageResult:
    """Outcome of converting a single page."""

    page_number: int
    original_size: int = 0
    compressed_size: int = 0
    output_file: Optional[Path] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, page_number: int, original_size: int, compressed_size: int, output_file: Path) -> "PageResult":
        return cls(page_number, original_size, compressed_size, output_file)

    @classmethod
    def failure(cls, page_number: int, error: str) -> "PageResult":
        return cls(page_number, error=error)


@dataclass
class ConversionResult:
    """Aggregate outcome of a completed conversion."""

    output_dir: Path
    total_pages: int
    pages: List[PageResult] = field(default_factory=list)

    @property
    def original_size(self) -> int:
        return sum(page.original_size for page in self.pages if page.ok)

    @property
    def compressed_size(self) -> int:
        return sum(page.compressed_size for page in self.pages if page.ok)

    @property
    def compression_ratio(self) -> float:
        # No page written means nothing was compressed
        if self.compressed_size == 0:
            return 1.0
        return round(self.original_size / self.compressed_size, 2)

    @property
    def errors(self) -> List[str]:
        return [page.error for page in self.pages if page.error is not None]


class ConversionPipeline:
    """
    Converts one PDF into ``<output_root>/<directory_id>/<page>.<format>``.

    The pipeline reports progress into the job tracker it was built with and
    only ever touches the job whose identifier it was started with.
    """

    def __init__(
        self,
        tracker: "JobManager",
        renderer: PageRenderer,
        optimizer: ImageOptimizer,
        output_root: Path,
        image_format: str,
    ) -> None:
        self.tracker = tracker
        self.renderer = renderer
        self.optimizer = optimizer
        self.output_root = output_root
        self.image_format = image_format

    def run(self, source_path: Path, directory_id: str, job_id: int) -> ConversionResult:
        """
        Convert every page of ``source_path`` for job ``job_id``.

        Returns:
            ConversionResult with the absolute output directory and per-page outcomes

        Raises:
            SourceNotFoundError: If the source PDF does not exist
            DocumentOpenError: If the source cannot be parsed
            Exception: Anything unexpected; the job is marked failed first
        """
        tracker = self.tracker
        tracker.mark_processing(job_id)

        try:
            # Re-uploads under the same directory id replace earlier output
            clean_directory_images(self.output_root, directory_id)

            if not source_path.exists():
                raise SourceNotFoundError(f"PDF file not found at path: {source_path}")

            output_dir = ensure_directory(self.output_root / directory_id)
            with self.renderer.open(source_path) as document:
                total_pages = self.renderer.page_count(document)
                tracker.set_total_pages(job_id, total_pages)
                logger.info("Processing PDF: %s", source_path.name)
                logger.info("Total pages: %d", total_pages)

                result = ConversionResult(output_dir=output_dir.resolve(), total_pages=total_pages)
                for page_number in range(1, total_pages + 1):
                    tracker.set_current_page(job_id, page_number)
                    page_result = self._convert_page(document, page_number, total_pages, output_dir)
                    result.pages.append(page_result)
                    if page_result.ok:
                        tracker.record_page_success(job_id)
                    else:
                        logger.error("Error rendering page %d: %s", page_number, page_result.error)
                        tracker.record_page_error(job_id, page_result.error)
        except Exception as exc:
            tracker.mark_failed(job_id, str(exc))
            logger.exception("Error converting PDF %s to images: %s", source_path, exc)
            raise

        logger.info("Conversion complete for directory %s", directory_id)
        logger.info("Overall compression ratio: %.2fx", result.compression_ratio)
        if result.errors:
            logger.warning(
                "%d of %d pages skipped for directory %s", len(result.errors), result.total_pages, directory_id
            )
        tracker.mark_completed(job_id, result.output_dir, result.compression_ratio)
        logger.info("Images saved to: %s", result.output_dir)
        return result

    def _convert_page(
        self,
        document: pymupdf.Document,
        page_number: int,
        total_pages: int,
        output_dir: Path,
    ) -> PageResult:
        try:
            raw = self.renderer.render(document, page_number, self.image_format)
            optimized = self.optimizer.optimize(raw, page_number, total_pages, self.image_format)
            image_path = output_dir / f"{page_number}.{self.image_format}"
            image_path.write_bytes(optimized)
        except (PageRenderError, OSError) as exc:
            return PageResult.failure(page_number, f"Error on page {page_number}: {exc}")
        finally:
            self.renderer.release()
        return PageResult.success(page_number, len(raw), len(optimized), image_path)
