"""
Pytest configuration and fixtures for PDF Raster Backend tests.
"""

import os
import shutil
import tempfile
import time

import pymupdf
import pytest
from fastapi.testclient import TestClient

# Set test environment variables before importing the app
os.environ["PDF_INPUT_DIR"] = tempfile.mkdtemp(prefix="raster_test_pdfs_")
os.environ["IMAGE_OUTPUT_DIR"] = tempfile.mkdtemp(prefix="raster_test_images_")
os.environ["CLEANUP_ON_STARTUP"] = "false"

from pdf_raster_backend.configuration import make_runtime_config  # noqa: E402
from pdf_raster_backend.job_manager import JobManager  # noqa: E402
from pdf_raster_backend.main import app, job_manager  # noqa: E402

TERMINAL_STATUSES = {"completed", "failed"}


def build_pdf(page_count: int) -> bytes:
    """Generate a PDF with one line of text per page."""
    document = pymupdf.open()
    for number in range(1, page_count + 1):
        page = document.new_page(width=612, height=792)
        page.insert_text((72, 72), f"Page {number}", fontsize=24)
    data = document.tobytes()
    document.close()
    return data


@pytest.fixture(scope="session")
def test_dirs():
    """Expose and cleanup the service directories."""
    input_dir = os.environ["PDF_INPUT_DIR"]
    output_dir = os.environ["IMAGE_OUTPUT_DIR"]

    yield {
        "input": input_dir,
        "output": output_dir,
    }

    job_manager.shutdown(wait=True)
    shutil.rmtree(input_dir, ignore_errors=True)
    shutil.rmtree(output_dir, ignore_errors=True)


@pytest.fixture
def client(test_dirs):
    """Create a test client for the FastAPI app."""
    return TestClient(app)


@pytest.fixture
def three_page_pdf():
    """PDF bytes with three text pages."""
    return build_pdf(3)


@pytest.fixture
def make_pdf(tmp_path):
    """Factory writing an N-page PDF to a temporary file."""

    def _make(page_count: int, name: str = "document.pdf"):
        path = tmp_path / name
        path.write_bytes(build_pdf(page_count))
        return path

    return _make


@pytest.fixture
def manager(tmp_path):
    """A job manager with private input/output directories."""
    config = make_runtime_config(
        {
            "input_dir": str(tmp_path / "pdfs"),
            "output_dir": str(tmp_path / "images"),
            "max_workers": 1,
        }
    )
    local_manager = JobManager(config)
    yield local_manager
    local_manager.shutdown(wait=True)


@pytest.fixture
def wait_for_job(client):
    """Poll the status endpoint until the job reaches a terminal state."""

    def _wait(job_id: int, timeout: float = 30.0):
        deadline = time.monotonic() + timeout
        snapshots = []
        while time.monotonic() < deadline:
            response = client.get(f"/api/jobs/{job_id}")
            assert response.status_code == 200
            snapshots.append(response.json())
            if snapshots[-1]["status"] in TERMINAL_STATUSES:
                return snapshots
            time.sleep(0.05)
        raise AssertionError(f"Job {job_id} did not finish within {timeout}s: {snapshots[-1]}")

    return _wait


@pytest.fixture
def pdf_bytes():
    """Factory returning N-page PDF bytes."""
    return build_pdf
