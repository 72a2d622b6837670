"""Shared fixtures: in-memory images and PDFs, and an app client."""

from io import BytesIO

import fitz  # PyMuPDF
import pytest
from fastapi.testclient import TestClient
from PIL import Image

from doconvert import config
from doconvert.main import app


def make_image(width: int, height: int, fmt: str = "JPEG", color=(200, 40, 40)) -> bytes:
    buf = BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format=fmt)
    return buf.getvalue()


def make_pdf(*labels: str, size=(595, 842)) -> bytes:
    """One page per label, with the label written on the page."""
    doc = fitz.open()
    for label in labels:
        page = doc.new_page(width=size[0], height=size[1])
        page.insert_text((72, 72), label)
    data = doc.tobytes()
    doc.close()
    return data


def page_texts(data: bytes) -> list:
    with fitz.open(stream=data, filetype="pdf") as doc:
        return [page.get_text().strip() for page in doc]


@pytest.fixture
def jpeg():
    return make_image


@pytest.fixture
def pdf():
    return make_pdf


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def no_office(monkeypatch):
    """No hosted secret and no LibreOffice on PATH."""
    monkeypatch.setattr(config, "OFFICE_BACKEND", "auto")
    monkeypatch.setattr(config, "CONVERTAPI_SECRET", "")
    monkeypatch.setattr(config, "SOFFICE_BIN", "definitely-not-soffice-xyz")
