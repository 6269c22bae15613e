"""PDF rendering through headless Chromium (Playwright) plus HTML preparation for print."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

from bs4 import BeautifulSoup, Tag
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from cvengine.config import Settings
from cvengine.core.exceptions import RenderDegraded

logger = logging.getLogger(__name__)

_NOTICE_STYLE = "background: #f0f0f0; padding: 10px; border-radius: 5px; text-align: center; color: #666;"
AUDIO_NOTICE = f'<div class="pdf-media-notice" style="{_NOTICE_STYLE}">Audio content available in the online version</div>'
VIDEO_NOTICE = f'<div class="pdf-media-notice" style="{_NOTICE_STYLE}">Video content available in the online version</div>'
PDF_NOTICE = (
  '<div class="pdf-version-notice" style="background: #f9f9f9; padding: 10px; text-align: center; border-bottom: 1px solid #ddd; font-size: 12px; color: #666; margin-bottom: 20px;">'
  "<strong>PDF Version Notice:</strong> This PDF contains static content. For interactive features (podcast, forms, animations), please visit the online version."
  "</div>"
)
PRINT_STYLES = """<style>
@media print {
  body { -webkit-print-color-adjust: exact !important; print-color-adjust: exact !important; }
  .cv-container { max-width: none !important; width: 100% !important; margin: 0 !important; padding: 0 !important; box-shadow: none !important; }
  .page-break { page-break-before: always; }
  .no-print, .download-section, .download-btn { display: none !important; }
  .qr-code-section { position: static !important; }
}
</style>
"""


def _fragment(markup: str) -> Tag:
  return BeautifulSoup(markup, "html.parser").find()


def optimize_html_for_pdf(html: str) -> str:
  """Replace interactive elements with static equivalents before printing."""

  soup = BeautifulSoup(html, "html.parser")
  for name, notice in (("audio", AUDIO_NOTICE), ("video", VIDEO_NOTICE)):
    for element in soup.find_all(name):
      element.replace_with(_fragment(notice))
  for button in soup.find_all("button"):
    static = soup.new_tag("span", attrs={"class": "pdf-static-button"})
    static.extend(list(button.contents))
    button.replace_with(static)
  for script in soup.find_all("script"):
    script.decompose()
  if soup.head is not None:
    soup.head.append(_fragment(PRINT_STYLES))
  if soup.body is not None:
    soup.body.insert(0, _fragment(PDF_NOTICE))
  return str(soup)


class PdfRenderer(Protocol):
  async def render(self, html: str) -> bytes:
    """Return PDF bytes or raise ``RenderDegraded``."""


@dataclass(frozen=True)
class PdfTimeouts:
  launch: float = 30.0
  content: float = 45.0
  render: float = 60.0

  @classmethod
  def from_settings(cls, settings: Settings) -> PdfTimeouts:
    return cls(launch=settings.pdf_launch_timeout_seconds, content=settings.pdf_content_timeout_seconds, render=settings.pdf_render_timeout_seconds)


class PlaywrightPdfRenderer:
  """Render A4 PDFs with bounded launch, content and render stages.

  The browser is closed on every exit path, including cancellation of the
  enclosing generation task.
  """

  def __init__(self, timeouts: PdfTimeouts | None = None) -> None:
    self._timeouts = timeouts or PdfTimeouts()

  async def render(self, html: str) -> bytes:
    stage = "launch"
    try:
      async with async_playwright() as playwright:
        browser = await asyncio.wait_for(playwright.chromium.launch(args=["--no-sandbox", "--disable-dev-shm-usage"]), self._timeouts.launch)
        try:
          page = await browser.new_page()
          stage = "content"
          await asyncio.wait_for(page.set_content(html, wait_until="networkidle"), self._timeouts.content)
          stage = "render"
          return await asyncio.wait_for(page.pdf(format="A4", print_background=True, margin={"top": "0.5in", "right": "0.5in", "bottom": "0.5in", "left": "0.5in"}), self._timeouts.render)
        finally:
          await browser.close()
    except TimeoutError as exc:
      limit = getattr(self._timeouts, stage)
      raise RenderDegraded(f"PDF {stage} timed out after {limit:g}s") from exc
    except PlaywrightError as exc:
      raise RenderDegraded(f"PDF {stage} failed: {exc.message}") from exc
