"""
Pytest configuration and fixtures for the contract PDF service tests.
"""

import base64
import io
import os
import shutil
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from reportlab.pdfgen import canvas

# Keep the import-time application away from developer settings
os.environ.pop("PDF_SERVICE_CONFIG", None)
os.environ.pop("PDF_ENCRYPTION_BACKEND", None)

from contract_pdf_service.configuration import load_settings
from contract_pdf_service.encryption import DocumentPermissions
from contract_pdf_service.main import create_app

TEST_API_KEY = "test-api-key-12345"
TEST_SALT = "s3cr3t"


def make_pdf(pages: int = 2, width: float = 612, height: float = 792) -> bytes:
    """Build a small valid PDF with one line of text per page."""
    buffer = io.BytesIO()
    c = canvas.Canvas(buffer, pagesize=(width, height))
    for number in range(1, pages + 1):
        c.drawString(72, height - 72, f"Loan contract page {number}")
        c.showPage()
    c.save()
    return buffer.getvalue()


def to_data_uri(pdf_bytes: bytes) -> str:
    return "data:application/pdf;base64," + base64.b64encode(pdf_bytes).decode("ascii")


def temp_files(temp_dir: Path) -> list:
    if not temp_dir.exists():
        return []
    return sorted(temp_dir.glob("pdf-*"))


class CopyEncryptor:
    """Backend double that copies the input and records every call."""

    name = "copy"

    def __init__(self, available: bool = True):
        self.calls = []
        self.available = available

    def encrypt_file(self, input_path: Path, output_path: Path, password: str, permissions: DocumentPermissions) -> None:
        self.calls.append(
            {
                "input_path": input_path,
                "output_path": output_path,
                "password": password,
                "permissions": permissions,
                "input_bytes": input_path.read_bytes(),
            }
        )
        shutil.copyfile(input_path, output_path)

    def is_available(self) -> bool:
        return self.available


@pytest.fixture
def temp_dir(tmp_path):
    """Temp directory used by the encryption service under test."""
    return tmp_path / "pdf-service"


@pytest.fixture
def make_settings(temp_dir):
    """Factory for settings that never read the environment."""

    def _make(**overrides):
        values = {
            "environment": "test",
            "api_key": TEST_API_KEY,
            "server_salt": TEST_SALT,
            "temp_dir": str(temp_dir),
            "rate_limit_per_minute": 100,
            "log_level": "DEBUG",
        }
        values.update(overrides)
        return load_settings(values, use_env=False)

    return _make


@pytest.fixture
def settings(make_settings):
    return make_settings()


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    """Create a test client for the FastAPI app."""
    return TestClient(app)


@pytest.fixture
def auth_headers():
    return {"X-API-Key": TEST_API_KEY}


@pytest.fixture
def sample_pdf():
    """A valid two-page PDF."""
    return make_pdf(pages=2)


@pytest.fixture
def sample_pdf_uri(sample_pdf):
    return to_data_uri(sample_pdf)
