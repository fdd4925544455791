"""Command line interface for the PDF raster service."""

from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
from typing import Any, Dict, Sequence

from .configuration import IMAGE_FORMATS, make_runtime_config
from .job_manager import JobManager
from .utils import configure_logging, sanitize_directory_id

logger = logging.getLogger(__name__)


def _create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pdf-raster", description="Rasterize PDF documents into page images")
    subparsers = parser.add_subparsers(dest="command")
    subparsers.required = True

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=int(os.environ.get("PORT", "3001")))
    serve.set_defaults(handler=_serve)

    batch = subparsers.add_parser("batch", help="Convert every PDF in a directory")
    batch.add_argument("--input-dir", help="Directory containing PDFs (default: configured input_dir)")
    batch.add_argument("--output-dir", help="Root for rendered pages (default: configured output_dir)")
    batch.add_argument("--format", choices=IMAGE_FORMATS, dest="image_format")
    batch.add_argument("--scale", type=float)
    batch.set_defaults(handler=_batch)
    return parser


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("pdf_raster_backend.main:app", host=args.host, port=args.port)
    return 0


def _batch(args: argparse.Namespace) -> int:
    overrides: Dict[str, Any] = {
        "input_dir": args.input_dir,
        "output_dir": args.output_dir,
        "image_format": args.image_format,
        "scale": args.scale,
    }
    config = make_runtime_config({key: value for key, value in overrides.items() if value is not None})
    configure_logging(config.log_level)

    input_dir = Path(config.input_dir)
    try:
        pdf_files = sorted(path for path in input_dir.iterdir() if path.suffix.lower() == ".pdf")
    except OSError as exc:
        logger.error("Error reading directory %s: %s", input_dir, exc)
        return 1

    if not pdf_files:
        logger.info("No PDF files found in %s", input_dir)
        return 0

    logger.info("Found %d PDF files to process", len(pdf_files))
    manager = JobManager(config)
    try:
        for pdf_path in pdf_files:
            directory_id = sanitize_directory_id(pdf_path.stem)
            job_id = manager.create_job(directory_id, pdf_path)
            try:
                result = manager.pipeline.run(pdf_path, directory_id, job_id)
            except Exception as exc:  # noqa: BLE001
                logger.exception("Error processing %s: %s", pdf_path.name, exc)
                continue
            logger.info("Images saved in: %s", result.output_dir)
    finally:
        manager.shutdown()

    logger.info("All PDF conversions completed")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = _create_parser()
    args = parser.parse_args(argv)
    return args.handler(args)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
