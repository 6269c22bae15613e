"""Persistence of generated artifacts: HTML is mandatory, PDF is best-effort, DOCX is a stub."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from cvengine.core.exceptions import FilePersistenceError, RenderDegraded
from cvengine.cv.pdf import PdfRenderer, optimize_html_for_pdf
from cvengine.jobs.models import GeneratedFiles
from cvengine.services.storage_client import ObjectStorage

logger = logging.getLogger(__name__)

ARTIFACT_NAMES: dict[str, str] = {"html": "cv.html", "pdf": "cv.pdf", "docx": "cv.docx"}


def artifact_path(user_id: str, job_id: str, kind: str) -> str:
  return f"users/{user_id}/generated/{job_id}/{ARTIFACT_NAMES[kind]}"


@dataclass
class FileGenerationResult:
  html_url: str
  pdf_url: str = ""
  docx_url: str = ""
  errors: list[str] = field(default_factory=list)

  def to_generated_files(self) -> GeneratedFiles:
    return GeneratedFiles(html_url=self.html_url, pdf_url=self.pdf_url, docx_url=self.docx_url)


class FileManager:
  """Write artifacts to object storage and hand back links.

  ``pdf_renderer=None`` disables PDF output without recording an error.
  """

  def __init__(self, storage: ObjectStorage, *, pdf_renderer: PdfRenderer | None, url_ttl_seconds: int) -> None:
    self._storage = storage
    self._pdf_renderer = pdf_renderer
    self._url_ttl_seconds = url_ttl_seconds

  async def persist(self, job_id: str, user_id: str, html: str) -> FileGenerationResult:
    html_path = artifact_path(user_id, job_id, "html")
    try:
      await self._storage.save(html_path, html.encode("utf-8"), "text/html; charset=utf-8")
      html_url = await self._storage.signed_url(html_path, self._url_ttl_seconds)
    except Exception as exc:
      raise FilePersistenceError(f"Critical failure: Could not save HTML file: {exc}") from exc
    logger.info("HTML saved job_id=%s path=%s", job_id, html_path)

    result = FileGenerationResult(html_url=html_url)
    if self._pdf_renderer is not None:
      try:
        result.pdf_url = await self._persist_pdf(job_id, user_id, html)
      except RenderDegraded as exc:
        logger.warning("PDF generation degraded job_id=%s error=%s", job_id, exc)
        result.errors.append(str(exc))
      except Exception as exc:  # noqa: BLE001
        # Renderer unavailable (driver missing, subprocess refused); HTML is already stored.
        logger.warning("PDF renderer failed job_id=%s", job_id, exc_info=True)
        result.errors.append(f"PDF generation failed: {exc}")
    result.docx_url = await self.generate_docx(job_id, user_id, html)
    return result

  async def _persist_pdf(self, job_id: str, user_id: str, html: str) -> str:
    pdf_bytes = await self._pdf_renderer.render(optimize_html_for_pdf(html))
    pdf_path = artifact_path(user_id, job_id, "pdf")
    try:
      await self._storage.save(pdf_path, pdf_bytes, "application/pdf")
      return await self._storage.signed_url(pdf_path, self._url_ttl_seconds)
    except Exception as exc:  # noqa: BLE001
      raise RenderDegraded(f"PDF upload failed: {exc}") from exc

  async def generate_docx(self, job_id: str, user_id: str, html: str) -> str:
    """DOCX export is not produced yet; the link stays empty."""
    return ""

  async def delete_generated_files(self, user_id: str, job_id: str) -> list[str]:
    """Delete whatever artifacts exist for the job; returns the deleted paths."""
    deleted: list[str] = []
    for kind in ARTIFACT_NAMES:
      path = artifact_path(user_id, job_id, kind)
      try:
        if await self._storage.exists(path):
          await self._storage.delete(path)
          deleted.append(path)
      except Exception:  # noqa: BLE001
        logger.warning("Failed to delete artifact job_id=%s path=%s", job_id, path, exc_info=True)
    return deleted

  async def check_files_exist(self, user_id: str, job_id: str) -> dict[str, bool]:
    return {kind: await self._storage.exists(artifact_path(user_id, job_id, kind)) for kind in ARTIFACT_NAMES}
