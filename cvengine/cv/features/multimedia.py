"""Media-backed features: QR code, podcast, video introduction, portfolio gallery.

Audio and video assets are produced by upstream media stages and arrive through
the enrichment side-channel. When they are not ready the fragments render a
placeholder the client page can poll and replace.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

from cvengine.cv.features.base import FeatureType, TemplateFeature, enrichment_of
from cvengine.cv.models import ParsedResume

QR_IMAGE_ENDPOINT = "https://api.qrserver.com/v1/create-qr-code/"
QR_SIZE = 160


class QrCodeFeature(TemplateFeature):
  feature_type = FeatureType.EMBED_QR_CODE
  template_name = "qr_code.html.jinja"
  styles = """
.qr-code-section { display: flex; align-items: center; gap: 1.5rem; }
.qr-code-section img { width: 160px; height: 160px; border: 1px solid #e5e7eb; border-radius: 8px; }
"""

  def build_context(self, resume: ParsedResume, job_id: str, options: Mapping[str, Any]) -> dict[str, Any] | None:
    target_url = options.get("qr_target_url") or options.get("profile_url")
    if not target_url:
      target_url = resume.personal_info.linkedin or resume.personal_info.website
    if not target_url:
      return None
    image_url = f"{QR_IMAGE_ENDPOINT}?size={QR_SIZE}x{QR_SIZE}&data={quote(target_url, safe='')}"
    return {"target_url": target_url, "image_url": image_url, "name": resume.display_name}


class PodcastFeature(TemplateFeature):
  feature_type = FeatureType.GENERATE_PODCAST
  template_name = "podcast_player.html.jinja"
  styles = """
.podcast-player { background: #f8fafc; border-radius: 12px; padding: 1.25rem; }
.podcast-player audio { width: 100%; margin-top: 0.75rem; }
.podcast-player .podcast-pending { color: #64748b; font-style: italic; }
"""
  scripts = """
document.querySelectorAll('.podcast-player[data-status="pending"]').forEach(function (el) {
  el.dispatchEvent(new CustomEvent('cv:podcast-pending', { bubbles: true, detail: { jobId: el.dataset.jobId } }));
});
"""

  def build_context(self, resume: ParsedResume, job_id: str, options: Mapping[str, Any]) -> dict[str, Any] | None:
    podcast = enrichment_of(options, "podcast")
    return {
      "name": resume.display_name,
      "audio_url": podcast.get("audio_url"),
      "duration": podcast.get("duration"),
      "transcript": podcast.get("transcript"),
    }


class VideoIntroductionFeature(TemplateFeature):
  feature_type = FeatureType.VIDEO_INTRODUCTION
  template_name = "video_introduction.html.jinja"
  styles = """
.video-introduction video { width: 100%; max-width: 640px; border-radius: 12px; }
.video-introduction .video-pending { color: #64748b; font-style: italic; }
"""

  def build_context(self, resume: ParsedResume, job_id: str, options: Mapping[str, Any]) -> dict[str, Any] | None:
    video = enrichment_of(options, "video")
    return {"name": resume.display_name, "video_url": video.get("video_url"), "thumbnail_url": video.get("thumbnail_url"), "script": video.get("script")}


class PortfolioGalleryFeature(TemplateFeature):
  feature_type = FeatureType.PORTFOLIO_GALLERY
  template_name = "portfolio_gallery.html.jinja"
  styles = """
.portfolio-gallery .gallery-grid { display: grid; grid-template-columns: repeat(auto-fill, minmax(220px, 1fr)); gap: 1rem; }
.portfolio-gallery .gallery-item { border: 1px solid #e5e7eb; border-radius: 10px; padding: 1rem; }
.portfolio-gallery .gallery-tech { font-size: 0.8rem; color: #475569; }
"""

  def build_context(self, resume: ParsedResume, job_id: str, options: Mapping[str, Any]) -> dict[str, Any] | None:
    projects = [project for project in resume.projects if project.name]
    if not projects:
      return None
    return {"projects": projects}
