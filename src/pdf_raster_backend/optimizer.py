"""
Post-render image optimization with Pillow.

The optimizer resizes a rendered page to fit within configured bounds (never
upscaling), applies a mild unsharp mask and re-encodes it with the options for
the target format. Options are fixed when the optimizer is built; they come
from the ``compression`` section of the process configuration.
"""

from __future__ import annotations

import io
import logging
from typing import Any, Dict

from omegaconf import DictConfig, OmegaConf
from PIL import Image, ImageFilter

logger = logging.getLogger(__name__)


class ImageOptimizer:
    def __init__(self, options: DictConfig | Dict[str, Any]) -> None:
        if isinstance(options, DictConfig):
            options = OmegaConf.to_container(options, resolve=True)  # type: ignore[assignment]
        self.options: Dict[str, Any] = dict(options)  # type: ignore[arg-type]

    def optimize(self, image_bytes: bytes, page_number: int, total_pages: int, image_format: str) -> bytes:
        """
        Compress one rendered page.

        Never raises: if decoding or encoding fails the input bytes are
        returned unchanged so the page can still be written.

        Args:
            image_bytes: Encoded bitmap produced by the renderer
            page_number: 1-based page number, for logging
            total_pages: Page count of the document, for logging
            image_format: Target format (jpeg, png or webp)

        Returns:
            The optimized encoding, or ``image_bytes`` on failure
        """
        try:
            optimized = self._encode(image_bytes, image_format)
        except Exception as exc:
            logger.error("Error optimizing image for page %d: %s", page_number, exc)
            return image_bytes

        ratio = len(image_bytes) / len(optimized) if optimized else 0.0
        logger.info(
            "Page %d/%d - Compression ratio: %.2fx (%.2fKB -> %.2fKB)",
            page_number,
            total_pages,
            ratio,
            len(image_bytes) / 1024,
            len(optimized) / 1024,
        )
        return optimized

    def _encode(self, image_bytes: bytes, image_format: str) -> bytes:
        opts = self.options
        with Image.open(io.BytesIO(image_bytes)) as source:
            image = source.convert("RGB") if source.mode not in ("RGB", "L") else source.copy()

        resize = opts.get("resize", {})
        if resize.get("enabled"):
            # thumbnail() keeps the aspect ratio and never enlarges
            image.thumbnail((int(resize["max_width"]), int(resize["max_height"])), Image.Resampling.LANCZOS)

        sharpening = opts.get("sharpening", {})
        if sharpening.get("enabled"):
            image = image.filter(
                ImageFilter.UnsharpMask(
                    radius=float(sharpening["sigma"]),
                    percent=int(round(float(sharpening["strength"]) * 100)),
                    threshold=0,
                )
            )

        buffer = io.BytesIO()
        if image_format == "jpeg":
            jpeg = opts["jpeg"]
            image.save(
                buffer,
                format="JPEG",
                quality=int(jpeg["quality"]),
                progressive=bool(jpeg["progressive"]),
                optimize=bool(jpeg["optimize_coding"]),
                subsampling=jpeg["subsampling"],
            )
        elif image_format == "png":
            png = opts["png"]
            if png.get("palette"):
                image = image.quantize(colors=int(png["palette_colors"]))
            image.save(buffer, format="PNG", compress_level=int(png["compression_level"]))
        elif image_format == "webp":
            webp = opts["webp"]
            image.save(
                buffer,
                format="WEBP",
                quality=int(webp["quality"]),
                lossless=bool(webp["lossless"]),
                method=int(webp["effort"]),
            )
        else:
            raise ValueError(f"Unsupported image format: {image_format}")
        return buffer.getvalue()
