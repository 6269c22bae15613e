from __future__ import annotations

import pytest

from cvengine.core.exceptions import FilePersistenceError
from cvengine.cv.files import FileManager, artifact_path
from cvengine.cv.pdf import AUDIO_NOTICE, PDF_NOTICE, VIDEO_NOTICE, optimize_html_for_pdf
from tests.fakes import InMemoryStorage, StaticPdfRenderer

HTML = """<!DOCTYPE html>
<html><head><title>CV</title></head>
<body class="cv">
<audio controls src="a.mp3"></audio>
<VIDEO src="v.mp4">
  <source src="v.webm">
</VIDEO>
<button type="button" onclick="downloadPDF()">Download PDF</button>
<script>function downloadPDF() {}</script>
</body></html>"""


def test_optimize_html_for_pdf_replaces_interactive_elements() -> None:
  optimized = optimize_html_for_pdf(HTML)
  assert "<audio" not in optimized and AUDIO_NOTICE in optimized
  assert "<VIDEO" not in optimized and VIDEO_NOTICE in optimized
  assert "<button" not in optimized
  assert '<span class="pdf-static-button">Download PDF</span>' in optimized
  assert "<script" not in optimized
  assert optimized.index("@media print") < optimized.index("</head>")
  assert optimized.index('<body class="cv">') < optimized.index(PDF_NOTICE)


def test_artifact_paths_are_scoped_to_user_and_job() -> None:
  assert artifact_path("user-1", "job-1", "html") == "users/user-1/generated/job-1/cv.html"
  assert artifact_path("user-1", "job-1", "pdf") == "users/user-1/generated/job-1/cv.pdf"


@pytest.mark.anyio
async def test_persist_stores_html_and_pdf(storage: InMemoryStorage) -> None:
  renderer = StaticPdfRenderer()
  manager = FileManager(storage, pdf_renderer=renderer, url_ttl_seconds=60)

  result = await manager.persist("job-1", "user-1", HTML)

  assert result.html_url == "https://storage.test/users/user-1/generated/job-1/cv.html?ttl=60"
  assert result.pdf_url.endswith("cv.pdf?ttl=60")
  assert result.docx_url == ""
  assert result.errors == []
  assert storage.objects["users/user-1/generated/job-1/cv.html"][1] == "text/html; charset=utf-8"
  assert storage.objects["users/user-1/generated/job-1/cv.pdf"] == (b"%PDF-1.7 test", "application/pdf")
  # The PDF is printed from the static variant of the page.
  assert PDF_NOTICE in renderer.rendered[0]


@pytest.mark.anyio
async def test_html_failure_is_fatal() -> None:
  manager = FileManager(InMemoryStorage(fail_paths=["cv.html"]), pdf_renderer=StaticPdfRenderer(), url_ttl_seconds=60)
  with pytest.raises(FilePersistenceError, match="Critical failure: Could not save HTML file"):
    await manager.persist("job-1", "user-1", HTML)


@pytest.mark.anyio
async def test_pdf_render_failure_is_recorded_not_raised(storage: InMemoryStorage) -> None:
  manager = FileManager(storage, pdf_renderer=StaticPdfRenderer(error="PDF launch timed out after 30s"), url_ttl_seconds=60)
  result = await manager.persist("job-1", "user-1", HTML)
  assert result.html_url
  assert result.pdf_url == ""
  assert result.errors == ["PDF launch timed out after 30s"]


@pytest.mark.anyio
async def test_pdf_upload_failure_is_degraded() -> None:
  manager = FileManager(InMemoryStorage(fail_paths=["cv.pdf"]), pdf_renderer=StaticPdfRenderer(), url_ttl_seconds=60)
  result = await manager.persist("job-1", "user-1", HTML)
  assert result.pdf_url == ""
  assert len(result.errors) == 1 and result.errors[0].startswith("PDF upload failed")


@pytest.mark.anyio
async def test_disabled_pdf_records_no_warning(storage: InMemoryStorage) -> None:
  result = await FileManager(storage, pdf_renderer=None, url_ttl_seconds=60).persist("job-1", "user-1", HTML)
  assert result.pdf_url == ""
  assert result.errors == []
  assert result.to_generated_files() == {"html_url": result.html_url, "pdf_url": "", "docx_url": ""}


@pytest.mark.anyio
async def test_delete_and_check_generated_files(storage: InMemoryStorage) -> None:
  manager = FileManager(storage, pdf_renderer=None, url_ttl_seconds=60)
  await manager.persist("job-1", "user-1", HTML)

  assert await manager.check_files_exist("user-1", "job-1") == {"html": True, "pdf": False, "docx": False}
  assert await manager.delete_generated_files("user-1", "job-1") == ["users/user-1/generated/job-1/cv.html"]
  assert storage.objects == {}


class CrashingPdfRenderer:
  async def render(self, html: str) -> bytes:
    raise RuntimeError("browser process crashed")


@pytest.mark.anyio
async def test_unexpected_renderer_error_keeps_html(storage: InMemoryStorage) -> None:
  result = await FileManager(storage, pdf_renderer=CrashingPdfRenderer(), url_ttl_seconds=60).persist("job-1", "user-1", HTML)
  assert result.html_url.endswith("cv.html?ttl=60")
  assert result.pdf_url == ""
  assert result.errors == ["PDF generation failed: browser process crashed"]


def test_optimize_html_for_pdf_respects_quoted_attributes() -> None:
  optimized = optimize_html_for_pdf('<html><head></head><body><button data-label="a>b">Play</button></body></html>')
  assert '<span class="pdf-static-button">Play</span>' in optimized
  assert 'b"&gt;' not in optimized and 'b">' not in optimized
