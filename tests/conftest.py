"""
Pytest configuration and fixtures for the PDF Functions tests.
"""

import os
import shutil
import tempfile
from io import BytesIO
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from pypdf import PdfReader, PdfWriter

# Point scratch storage at a throw-away directory before importing the app
os.environ["SCRATCH_ROOT"] = tempfile.mkdtemp(prefix="pdf_functions_test_scratch_")
os.environ["CONVERSION_POLL_INTERVAL"] = "0"

from pdf_functions.main import app
from pdf_functions.services.pipeline_service import PipelineController, get_pipeline


def build_pdf(*sizes):
    """Return PDF bytes with one blank page per (width, height) in ``sizes``."""
    writer = PdfWriter()
    for width, height in sizes:
        writer.add_blank_page(width=width, height=height)
    buffer = BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


def page_widths(data_or_path):
    source = BytesIO(data_or_path) if isinstance(data_or_path, bytes) else str(data_or_path)
    return [round(float(page.mediabox.width)) for page in PdfReader(source).pages]


def staged_files(root):
    return [Path(dirpath) / name for dirpath, _, names in os.walk(root) for name in names]


@pytest.fixture(scope="session", autouse=True)
def scratch_root():
    """Shared scratch root; removed after the session."""
    root = os.environ["SCRATCH_ROOT"]
    yield Path(root)
    shutil.rmtree(root, ignore_errors=True)


@pytest.fixture
def client():
    """Create a test client for the FastAPI app."""
    return TestClient(app)


@pytest.fixture
def use_pipeline(scratch_root):
    """Swap the controller behind the endpoints for one built from test doubles."""
    def _install(**collaborators):
        controller = PipelineController(scratch_root=str(scratch_root), **collaborators)
        app.dependency_overrides[get_pipeline] = lambda: controller
        return controller

    yield _install
    app.dependency_overrides.pop(get_pipeline, None)


@pytest.fixture
def single_page_pdf():
    return build_pdf((612, 792))


@pytest.fixture
def pdf_file(tmp_path):
    """Write a PDF with the given page sizes into tmp_path and return its path."""
    def _write(*sizes, name="input.pdf"):
        path = tmp_path / name
        path.write_bytes(build_pdf(*sizes))
        return path

    return _write
