# doconvert/main.py
import logging
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import quote

import uvicorn
from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response

from doconvert import config, office
from doconvert.assets import InputAsset
from doconvert.errors import CollaboratorFailure, EmptyOutput, InvalidInput, MergeFailed
from doconvert.images import Orientation, PageSize, build_image_pdf
from doconvert.merge import count_pages, merge_pdfs

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


# ----------------------------
# App
# ----------------------------
app = FastAPI(title="doconvert")

ALLOWED_IMAGE_KINDS = {"image/jpeg", "image/png"}
ALLOWED_PDF_KINDS = {"application/pdf"}


# ----------------------------
# Upload helpers
# ----------------------------
def _http_413(msg: str):
    raise HTTPException(status_code=413, detail=msg)


async def read_upload_limited(file: UploadFile, max_bytes: int) -> bytes:
    """
    Reads an UploadFile into memory in 1MB chunks, enforcing max size while reading.
    """
    chunks = []
    total = 0
    try:
        while True:
            chunk = await file.read(1024 * 1024)
            if not chunk:
                break
            total += len(chunk)
            if total > max_bytes:
                _http_413(f"File too large. Max allowed is {config.MAX_UPLOAD_MB}MB.")
            chunks.append(chunk)
    finally:
        await file.close()

    return b"".join(chunks)


def check_kind(asset: InputAsset, allowed: set, what: str) -> None:
    if asset.kind not in allowed:
        raise InvalidInput(f"Unsupported {what} type: {asset.suffix or asset.filename}")


async def collect_uploads(files: Optional[List[UploadFile]], allowed: set, what: str) -> List[InputAsset]:
    named = [f for f in (files or []) if f.filename]
    if not named:
        raise InvalidInput(f"No {what}s uploaded")
    if len(named) > config.MAX_FILES:
        raise InvalidInput(f"Too many files. Max allowed is {config.MAX_FILES}.")

    assets = []
    for f in named:
        asset = InputAsset(await read_upload_limited(f, config.MAX_UPLOAD_BYTES), f.filename)
        check_kind(asset, allowed, what)
        assets.append(asset)
    return assets


def attachment(data: bytes, media_type: str, filename: str, headers: Optional[Dict[str, str]] = None) -> Response:
    quoted = quote(filename)
    if quoted != filename:
        disposition = f"attachment; filename*=utf-8''{quoted}"
    else:
        disposition = f'attachment; filename="{filename}"'

    h = {"Content-Disposition": disposition}
    h.update(headers or {})
    return Response(content=data, media_type=media_type, headers=h)


# ----------------------------
# Health / status
# ----------------------------
@app.get("/api/health")
def health():
    return {"status": "ok", "max_upload_mb": config.MAX_UPLOAD_MB}


@app.get("/api/status")
def status():
    enabled = office.office_available()
    return {
        "wordEnabled": enabled,
        "pdfWordEnabled": enabled,
        "imagePdfEnabled": True,
        "mergePdfEnabled": True,
    }


# ----------------------------
# PDF assembly APIs
# ----------------------------
@app.post("/api/jpg-to-pdf")
async def jpg_to_pdf(
    files: Optional[List[UploadFile]] = File(None),
    pageSize: str = Form("A4"),
    orientation: str = Form("auto"),
):
    try:
        images = await collect_uploads(files, ALLOWED_IMAGE_KINDS, "image")
    except InvalidInput as e:
        raise HTTPException(400, str(e))

    try:
        result = await run_in_threadpool(
            build_image_pdf, images, PageSize.from_name(pageSize), Orientation.from_name(orientation)
        )
    except EmptyOutput as e:
        raise HTTPException(500, str(e))

    return attachment(
        result.data,
        "application/pdf",
        "images.pdf",
        headers={
            "X-Page-Count": str(result.page_count),
            "X-Skipped-Images": str(len(result.skipped)),
        },
    )


@app.post("/api/merge-pdf")
async def merge_pdf(files: Optional[List[UploadFile]] = File(None)):
    try:
        pdfs = await collect_uploads(files, ALLOWED_PDF_KINDS, "PDF")
    except InvalidInput as e:
        raise HTTPException(400, str(e))

    try:
        data = await run_in_threadpool(merge_pdfs, [p.data for p in pdfs], names=[p.filename for p in pdfs])
    except MergeFailed as e:
        raise HTTPException(500, f"Merge failed: {e}")

    return attachment(data, "application/pdf", "merged.pdf", headers={"X-Page-Count": str(count_pages(data))})


# ----------------------------
# Office conversion APIs
# ----------------------------
async def _office_convert(file: Optional[UploadFile], conversion: office.Conversion) -> Response:
    if file is None or not file.filename:
        raise HTTPException(400, "No file uploaded")
    if not conversion.accepts(file.filename):
        raise HTTPException(400, f"Unsupported file type: {Path(file.filename).suffix.lower() or file.filename}")

    data = await read_upload_limited(file, config.MAX_UPLOAD_BYTES)
    try:
        converted = await office.convert_document(InputAsset(data, file.filename), conversion)
    except CollaboratorFailure as e:
        raise HTTPException(500, str(e))

    return attachment(converted.data, converted.media_type, converted.filename)


@app.post("/api/convert")
async def word_to_pdf(file: Optional[UploadFile] = File(None)):
    return await _office_convert(file, office.WORD_TO_PDF)


@app.post("/api/pptx-to-pdf")
async def pptx_to_pdf(file: Optional[UploadFile] = File(None)):
    return await _office_convert(file, office.PPTX_TO_PDF)


@app.post("/api/pdf-to-word")
async def pdf_to_word(file: Optional[UploadFile] = File(None)):
    return await _office_convert(file, office.PDF_TO_WORD)


def run():
    uvicorn.run(app, host=config.HOST, port=config.PORT)
