from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional, Union

from fastapi import Depends, FastAPI, File, Form, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.datastructures import UploadFile as StarletteUploadFile

from . import __version__
from .configuration import config_to_dict, make_runtime_config
from .job_manager import JobManager
from .models import CleanupResponse, ConfigResponse, HealthResponse, JobDetail, UploadResponse
from .utils import cleanup_input_directory, configure_logging, ensure_directory, sanitize_directory_id

logger = logging.getLogger(__name__)

settings = make_runtime_config()
configure_logging(settings.log_level)

job_manager = JobManager(settings)
_started_at = time.monotonic()


def ensure_directories() -> None:
    ensure_directory(job_manager.upload_root)
    ensure_directory(job_manager.output_root)


@asynccontextmanager
async def lifespan(_: FastAPI):
    ensure_directories()
    if settings.cleanup_on_startup:
        # Uploads left by a previous process are dropped unconditionally.
        try:
            cleanup_input_directory(job_manager.upload_root)
        except OSError as exc:
            logger.error("Error cleaning directories: %s", exc)
    logger.info("PDF converter service ready (input=%s, output=%s)", job_manager.upload_root, job_manager.output_root)
    yield
    # Let accepted conversions finish before the process exits.
    job_manager.shutdown(wait=True)
    logger.info("PDF converter service stopped")


app = FastAPI(title="PDF Raster API", version=__version__, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_job_manager() -> JobManager:
    return job_manager


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def _store_upload(file: UploadFile, directory_id: str, manager: JobManager) -> Path:
    destination = ensure_directory(manager.upload_root) / f"{directory_id}.pdf"
    with destination.open("wb") as buffer:
        while chunk := await file.read(8 * 1024 * 1024):
            buffer.write(chunk)
    await file.close()
    return destination


@app.post("/api/upload", response_model=UploadResponse)
async def upload_pdf(
    pdf: Union[UploadFile, str, None] = File(None),
    directoryId: Optional[str] = Form(None),
    manager: JobManager = Depends(get_job_manager),
):
    # A plain form field named "pdf" arrives as a string, not a file part.
    if not isinstance(pdf, StarletteUploadFile) or not pdf.filename:
        return _error(400, "No PDF file uploaded")

    directory_id = sanitize_directory_id(directoryId or None)
    job_id = None
    try:
        pdf_path = await _store_upload(pdf, directory_id, manager)
        logger.info("Received PDF upload for directory ID: %s", directory_id)
        logger.info("PDF saved to: %s", pdf_path)

        job_id = manager.create_job(directory_id, pdf_path)
        manager.submit(job_id)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Error handling upload")
        if job_id is not None:
            manager.mark_failed(job_id, str(exc))
        return _error(500, str(exc))

    return UploadResponse(
        message="PDF uploaded successfully, conversion started",
        job_id=job_id,
        directory_id=directory_id,
    )


@app.get("/api/jobs", response_model=list[JobDetail])
def list_jobs(manager: JobManager = Depends(get_job_manager)) -> list[JobDetail]:
    return manager.list_jobs()


@app.get("/api/jobs/{job_id}", response_model=JobDetail)
def get_job(job_id: str, manager: JobManager = Depends(get_job_manager)):
    # int() would also accept signs, whitespace, underscores and non-ASCII digits
    job = None
    if job_id.isascii() and job_id.isdigit():
        job = manager.get_job(int(job_id))
    if job is None:
        logger.info("Job %s not found", job_id)
        return _error(404, "Job not found")
    return job


@app.post("/api/maintenance/cleanup", response_model=CleanupResponse)
def cleanup(manager: JobManager = Depends(get_job_manager)):
    try:
        deleted = cleanup_input_directory(manager.upload_root)
    except OSError as exc:
        logger.error("Cleanup failed: %s", exc)
        return _error(500, str(exc))
    return CleanupResponse(message="All temporary directories cleaned successfully", deleted=deleted)


@app.get("/api/config", response_model=ConfigResponse)
def get_config(manager: JobManager = Depends(get_job_manager)) -> ConfigResponse:
    return ConfigResponse(config=config_to_dict(manager.config))


@app.get("/api/health", response_model=HealthResponse)
def healthcheck(manager: JobManager = Depends(get_job_manager)) -> HealthResponse:
    return HealthResponse(
        status="ok",
        version=__version__,
        active_jobs=manager.active_jobs(),
        uptime=time.monotonic() - _started_at,
    )
