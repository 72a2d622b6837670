"""Office conversion pass-through: backend selection, ConvertAPI and LibreOffice."""

import subprocess
from pathlib import Path

import httpx
import pytest

from doconvert import config, office
from doconvert.assets import InputAsset
from doconvert.errors import CollaboratorFailure
from doconvert.office import (
    PDF_TO_WORD,
    PPTX_TO_PDF,
    WORD_TO_PDF,
    ConvertApiBackend,
    SofficeBackend,
    convert_document,
    get_backend,
    office_available,
    output_filename,
)


class TestOutputFilename:
    @pytest.mark.parametrize(
        "original,conversion,expected",
        [
            ("report.docx", WORD_TO_PDF, "report.pdf"),
            ("Report.DOC", WORD_TO_PDF, "Report.pdf"),
            ("slides.pptx", PPTX_TO_PDF, "slides.pdf"),
            ("scan.pdf", PDF_TO_WORD, "scan.docx"),
            ("", WORD_TO_PDF, "document.pdf"),
            (None, PPTX_TO_PDF, "presentation.pdf"),
            ("???.docx", WORD_TO_PDF, "document.pdf"),
            ("my notes.v2.docx", WORD_TO_PDF, "my notesv2.pdf"),
        ],
    )
    def test_recomputed_name(self, original, conversion, expected):
        assert output_filename(original, conversion) == expected

    def test_accepts(self):
        assert WORD_TO_PDF.accepts("a.DOCX")
        assert not WORD_TO_PDF.accepts("a.pdf")
        assert PDF_TO_WORD.source_format("x.pdf") == "pdf"
        assert WORD_TO_PDF.source_format("x.doc") == "doc"


class TestBackendSelection:
    def test_convertapi_without_secret(self, monkeypatch):
        monkeypatch.setattr(config, "OFFICE_BACKEND", "convertapi")
        monkeypatch.setattr(config, "CONVERTAPI_SECRET", "")

        with pytest.raises(CollaboratorFailure, match="CONVERTAPI_SECRET not configured"):
            get_backend()

    def test_auto_prefers_secret(self, monkeypatch):
        monkeypatch.setattr(config, "OFFICE_BACKEND", "auto")
        monkeypatch.setattr(config, "CONVERTAPI_SECRET", "s3cret")

        assert isinstance(get_backend(), ConvertApiBackend)

    def test_auto_falls_back_to_soffice(self, monkeypatch):
        monkeypatch.setattr(config, "OFFICE_BACKEND", "auto")
        monkeypatch.setattr(config, "CONVERTAPI_SECRET", "")
        monkeypatch.setattr(office.shutil, "which", lambda name: f"/usr/bin/{name}")

        assert isinstance(get_backend(), SofficeBackend)
        assert office_available()

    def test_nothing_configured(self, no_office):
        with pytest.raises(CollaboratorFailure, match="No office converter"):
            get_backend()
        assert not office_available()

    def test_unknown_backend(self, monkeypatch):
        monkeypatch.setattr(config, "OFFICE_BACKEND", "carrier-pigeon")
        with pytest.raises(CollaboratorFailure, match="Unknown OFFICE_BACKEND"):
            get_backend()

    def test_forced_soffice_missing_binary_is_unavailable(self, monkeypatch):
        monkeypatch.setattr(config, "OFFICE_BACKEND", "soffice")
        monkeypatch.setattr(config, "SOFFICE_BIN", "definitely-not-soffice-xyz")
        assert not office_available()


def _convertapi(handler) -> ConvertApiBackend:
    return ConvertApiBackend("s3cret", "https://api.example", transport=httpx.MockTransport(handler))


class TestConvertApiBackend:
    @pytest.mark.asyncio
    async def test_round_trip(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if request.method == "POST":
                return httpx.Response(200, json={"Files": [{"FileName": "r.pdf", "Url": "https://files.example/r.pdf"}]})
            return httpx.Response(200, content=b"%PDF-converted")

        data = await _convertapi(handler).convert(InputAsset(b"docx-bytes", "r.docx"), WORD_TO_PDF)

        assert data == b"%PDF-converted"
        post, get = seen
        assert post.url.path == "/convert/docx/to/pdf"
        assert post.headers["Authorization"] == "Bearer s3cret"
        assert b"docx-bytes" in post.read()
        assert str(get.url) == "https://files.example/r.pdf"

    @pytest.mark.asyncio
    async def test_api_error(self):
        def handler(request):
            return httpx.Response(401, text="bad secret")

        with pytest.raises(CollaboratorFailure, match="401"):
            await _convertapi(handler).convert(InputAsset(b"x", "a.pptx"), PPTX_TO_PDF)

    @pytest.mark.asyncio
    async def test_malformed_response(self):
        def handler(request):
            return httpx.Response(200, json={"Files": []})

        with pytest.raises(CollaboratorFailure, match="Unexpected"):
            await _convertapi(handler).convert(InputAsset(b"x", "a.pdf"), PDF_TO_WORD)

    @pytest.mark.asyncio
    async def test_download_failure(self):
        def handler(request):
            if request.method == "POST":
                return httpx.Response(200, json={"Files": [{"Url": "https://files.example/gone"}]})
            return httpx.Response(404)

        with pytest.raises(CollaboratorFailure, match="Failed to download converted file"):
            await _convertapi(handler).convert(InputAsset(b"x", "a.doc"), WORD_TO_PDF)

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(CollaboratorFailure, match="request failed"):
            await _convertapi(handler).convert(InputAsset(b"x", "a.doc"), WORD_TO_PDF)


class TestSofficeBackend:
    def _fake_run(self, calls, returncode=0, produce=True, stderr=""):
        def run(cmd, **kwargs):
            calls.append(cmd)
            out_dir = Path(cmd[cmd.index("--outdir") + 1])
            src = Path(cmd[-1])
            target = cmd[cmd.index("--convert-to") + 1].split(":")[0]
            if produce:
                (out_dir / f"{src.stem}.{target}").write_bytes(b"converted:" + src.read_bytes())
            return subprocess.CompletedProcess(cmd, returncode, "", stderr)

        return run

    def test_word_to_pdf(self, monkeypatch):
        calls = []
        monkeypatch.setattr(office.subprocess, "run", self._fake_run(calls))

        data = SofficeBackend("soffice").run(InputAsset(b"doc", "letter.docx"), WORD_TO_PDF)

        assert data == b"converted:doc"
        cmd = calls[0]
        assert cmd[0] == "soffice" and "--headless" in cmd
        assert cmd[cmd.index("--convert-to") + 1] == "pdf"
        assert cmd[-1].endswith("input.docx")
        assert not Path(cmd[-1]).exists()

    def test_pdf_to_word_uses_import_filter(self, monkeypatch):
        calls = []
        monkeypatch.setattr(office.subprocess, "run", self._fake_run(calls))

        SofficeBackend().run(InputAsset(b"pdf", "scan.pdf"), PDF_TO_WORD)

        assert "--infilter=writer_pdf_import" in calls[0]
        assert calls[0][calls[0].index("--convert-to") + 1].startswith("docx")

    def test_non_zero_exit(self, monkeypatch):
        monkeypatch.setattr(office.subprocess, "run", self._fake_run([], returncode=1, stderr="boom"))

        with pytest.raises(CollaboratorFailure, match="boom"):
            SofficeBackend().run(InputAsset(b"x", "a.pptx"), PPTX_TO_PDF)

    def test_no_output(self, monkeypatch):
        monkeypatch.setattr(office.subprocess, "run", self._fake_run([], produce=False))

        with pytest.raises(CollaboratorFailure, match="No PDF produced"):
            SofficeBackend().run(InputAsset(b"x", "a.doc"), WORD_TO_PDF)

    def test_timeout(self, monkeypatch):
        def run(cmd, **kwargs):
            raise subprocess.TimeoutExpired(cmd, kwargs["timeout"])

        monkeypatch.setattr(office.subprocess, "run", run)

        with pytest.raises(CollaboratorFailure, match="timed out"):
            SofficeBackend(timeout=5).run(InputAsset(b"x", "a.doc"), WORD_TO_PDF)

    def test_missing_binary(self):
        with pytest.raises(CollaboratorFailure, match="not found"):
            SofficeBackend("definitely-not-soffice-xyz").run(InputAsset(b"x", "a.doc"), WORD_TO_PDF)

    @pytest.mark.asyncio
    async def test_convert_document(self, monkeypatch):
        monkeypatch.setattr(config, "OFFICE_BACKEND", "soffice")
        monkeypatch.setattr(office.subprocess, "run", self._fake_run([]))

        converted = await convert_document(InputAsset(b"pp", "deck.pptx"), PPTX_TO_PDF)

        assert converted.data == b"converted:pp"
        assert converted.filename == "deck.pdf"
        assert converted.media_type == "application/pdf"
