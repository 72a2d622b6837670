# doconvert/office.py
"""
Office document conversion pass-through.

The file is handed to an external converter and the result is relayed as is.
Two backends exist: the hosted ConvertAPI service, and a local headless
LibreOffice (``soffice``) run as a subprocess.
"""
import logging
import shutil
import ssl
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import certifi
import httpx
from fastapi.concurrency import run_in_threadpool

from doconvert import config
from doconvert.assets import InputAsset, media_type_for
from doconvert.errors import CollaboratorFailure

logger = logging.getLogger(__name__)


# ----------------------------
# Conversions
# ----------------------------
@dataclass(frozen=True)
class Conversion:
    name: str
    source_exts: Tuple[str, ...]
    target: str
    default_stem: str

    def accepts(self, filename: str) -> bool:
        return Path(filename or "").suffix.lower() in self.source_exts

    def source_format(self, filename: str) -> str:
        ext = Path(filename or "").suffix.lower()
        if ext not in self.source_exts:
            ext = self.source_exts[-1]
        return ext.lstrip(".")


WORD_TO_PDF = Conversion("word-to-pdf", (".doc", ".docx"), "pdf", "document")
PPTX_TO_PDF = Conversion("pptx-to-pdf", (".ppt", ".pptx"), "pdf", "presentation")
PDF_TO_WORD = Conversion("pdf-to-word", (".pdf",), "docx", "document")


@dataclass
class ConvertedFile:
    data: bytes
    filename: str
    media_type: str


def _safe_name(name: str) -> str:
    return "".join(c for c in name if c.isalnum() or c in ("-", "_", " ")).strip()


def output_filename(original: Optional[str], conversion: Conversion) -> str:
    name = original or ""
    if conversion.accepts(name):
        name = name[: -len(Path(name).suffix)]
    stem = _safe_name(name) or conversion.default_stem
    return f"{stem}.{conversion.target}"


# ----------------------------
# Hosted API backend
# ----------------------------
def _ssl_context() -> ssl.SSLContext:
    return ssl.create_default_context(cafile=certifi.where())


class ConvertApiBackend:
    name = "convertapi"

    def __init__(
        self,
        secret: str,
        base_url: str = "https://v2.convertapi.com",
        timeout: float = 120,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not secret:
            raise CollaboratorFailure("CONVERTAPI_SECRET not configured")
        self.secret = secret
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def convert(self, asset: InputAsset, conversion: Conversion) -> bytes:
        src = conversion.source_format(asset.filename)
        url = f"{self.base_url}/convert/{src}/to/{conversion.target}"
        headers = {"Authorization": f"Bearer {self.secret}", "accept": "application/json"}

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, verify=_ssl_context(), transport=self._transport
            ) as client:
                r = await client.post(
                    url,
                    headers=headers,
                    data={"StoreFile": "true"},
                    files={"File": (asset.filename or f"{conversion.default_stem}.{src}", asset.data)},
                )
                if r.status_code >= 400:
                    raise CollaboratorFailure(f"ConvertAPI error {r.status_code}: {r.text}")

                try:
                    file_url = r.json()["Files"][0]["Url"]
                except (ValueError, KeyError, IndexError, TypeError) as e:
                    raise CollaboratorFailure(f"Unexpected ConvertAPI response: {e!r}") from e

                resp = await client.get(file_url)
                if resp.status_code >= 400:
                    raise CollaboratorFailure("Failed to download converted file")
        except httpx.HTTPError as e:
            raise CollaboratorFailure(f"ConvertAPI request failed: {e}") from e

        return resp.content


# ----------------------------
# Local LibreOffice backend
# ----------------------------
class SofficeBackend:
    name = "soffice"

    def __init__(self, binary: str = "soffice", timeout: float = 180):
        self.binary = binary
        self.timeout = timeout

    def command(self, input_path: Path, out_dir: Path, conversion: Conversion) -> list:
        cmd = [
            self.binary,
            "--headless",
            "--nologo",
            "--nolockcheck",
            "--nodefault",
            "--nofirststartwizard",
        ]
        if input_path.suffix.lower() == ".pdf":
            cmd.append("--infilter=writer_pdf_import")

        target = conversion.target
        if target == "docx":
            target = "docx:MS Word 2007 XML"

        cmd += ["--convert-to", target, "--outdir", str(out_dir), str(input_path)]
        return cmd

    def run(self, asset: InputAsset, conversion: Conversion) -> bytes:
        with tempfile.TemporaryDirectory(prefix="doconvert-") as tmp:
            tmp_dir = Path(tmp)
            input_path = tmp_dir / f"input.{conversion.source_format(asset.filename)}"
            input_path.write_bytes(asset.data)
            out_dir = tmp_dir / "out"
            out_dir.mkdir()

            cmd = self.command(input_path, out_dir, conversion)
            try:
                p = subprocess.run(
                    cmd,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    text=True,
                    timeout=self.timeout,
                )
            except FileNotFoundError as e:
                raise CollaboratorFailure(f"LibreOffice not found: {self.binary}") from e
            except subprocess.TimeoutExpired as e:
                raise CollaboratorFailure(f"LibreOffice timed out after {self.timeout:g}s") from e

            if p.returncode != 0:
                raise CollaboratorFailure(p.stderr or p.stdout or "LibreOffice conversion failed")

            expected = out_dir / f"{input_path.stem}.{conversion.target}"
            if not expected.exists():
                produced = sorted(out_dir.glob(f"*.{conversion.target}"))
                if not produced:
                    raise CollaboratorFailure(f"No {conversion.target.upper()} produced by LibreOffice")
                expected = produced[0]

            return expected.read_bytes()

    async def convert(self, asset: InputAsset, conversion: Conversion) -> bytes:
        return await run_in_threadpool(self.run, asset, conversion)


# ----------------------------
# Backend selection
# ----------------------------
def get_backend():
    mode = config.OFFICE_BACKEND

    if mode == "convertapi":
        return ConvertApiBackend(config.CONVERTAPI_SECRET, config.CONVERTAPI_BASE_URL, config.CONVERTAPI_TIMEOUT)
    if mode == "soffice":
        return SofficeBackend(config.SOFFICE_BIN, config.SOFFICE_TIMEOUT)
    if mode != "auto":
        raise CollaboratorFailure(f"Unknown OFFICE_BACKEND: {mode}")

    if config.CONVERTAPI_SECRET:
        return ConvertApiBackend(config.CONVERTAPI_SECRET, config.CONVERTAPI_BASE_URL, config.CONVERTAPI_TIMEOUT)
    if shutil.which(config.SOFFICE_BIN):
        return SofficeBackend(config.SOFFICE_BIN, config.SOFFICE_TIMEOUT)
    raise CollaboratorFailure("No office converter configured: set CONVERTAPI_SECRET or install LibreOffice")


def office_available() -> bool:
    try:
        backend = get_backend()
    except CollaboratorFailure:
        return False
    if isinstance(backend, SofficeBackend):
        return shutil.which(backend.binary) is not None
    return True


async def convert_document(asset: InputAsset, conversion: Conversion) -> ConvertedFile:
    backend = get_backend()
    logger.info("Converting %r (%s) via %s", asset.filename, conversion.name, backend.name)

    try:
        data = await backend.convert(asset, conversion)
    except CollaboratorFailure as e:
        logger.error("Conversion %s failed via %s: %s", conversion.name, backend.name, e)
        raise

    return ConvertedFile(
        data=data,
        filename=output_filename(asset.filename, conversion),
        media_type=media_type_for(conversion.target),
    )
