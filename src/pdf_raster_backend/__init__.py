"""
PDF Raster Backend - REST API for rasterizing PDF documents

This package provides a FastAPI-based web service that converts uploaded PDF
documents into compressed page images. It enables:

- PDF document uploads grouped under a directory identifier
- Asynchronous page-by-page conversion jobs
- Job status polling with per-page progress and error reporting
- Per-page resizing, sharpening and format-specific compression
- Maintenance of the transient upload directory

The backend is an orchestration layer: PDF parsing and rendering is delegated
to PyMuPDF and image encoding to Pillow.

Key Components:
    - main: FastAPI application and HTTP endpoint definitions
    - job_manager: Job registry, state machine and background execution
    - pipeline: Sequential render/optimize/persist loop for one document
    - renderer: PyMuPDF page rendering
    - optimizer: Pillow-based resize/sharpen/compress step
    - configuration: Default config loading and environment overrides
    - models: Pydantic models for API responses
    - utils: Filesystem helpers and logging setup
    - cli: Command line entry point (serve and batch modes)

Usage:
    Run the API server with:
        uvicorn pdf_raster_backend.main:app --host 0.0.0.0 --port 3001

    Or use the console script:
        pdf-raster serve --port 3001
"""

__version__ = "1.0.0"
