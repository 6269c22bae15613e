"""Feature contracts: the closed set of feature ids and the generator protocol."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, ClassVar, Protocol

from cvengine.cv.models import ParsedResume
from cvengine.cv.templating import get_environment


class FeatureType(StrEnum):
  EMBED_QR_CODE = "embed-qr-code"
  GENERATE_PODCAST = "generate-podcast"
  PRIVACY_MODE = "privacy-mode"
  INTERACTIVE_TIMELINE = "interactive-timeline"
  SKILLS_VISUALIZATION = "skills-visualization"
  SOCIAL_MEDIA_LINKS = "social-media-links"
  CONTACT_FORM = "contact-form"
  CALENDAR_INTEGRATION = "calendar-integration"
  LANGUAGE_PROFICIENCY = "language-proficiency"
  CERTIFICATION_BADGES = "certification-badges"
  ACHIEVEMENTS_SHOWCASE = "achievements-showcase"
  VIDEO_INTRODUCTION = "video-introduction"
  PORTFOLIO_GALLERY = "portfolio-gallery"
  TESTIMONIALS_CAROUSEL = "testimonials-carousel"
  PERSONALITY_INSIGHTS = "personality-insights"


# Legacy ids still sent by older clients.
FEATURE_ALIASES: dict[str, FeatureType] = {
  "availability-calendar": FeatureType.CALENDAR_INTEGRATION,
  "achievement-highlighting": FeatureType.ACHIEVEMENTS_SHOWCASE,
}

# Each feature owns exactly one slot in the rendered document.
FEATURE_SLOTS: dict[FeatureType, str] = {
  FeatureType.EMBED_QR_CODE: "qr_code",
  FeatureType.GENERATE_PODCAST: "podcast_player",
  FeatureType.INTERACTIVE_TIMELINE: "timeline",
  FeatureType.SKILLS_VISUALIZATION: "skills_chart",
  FeatureType.SOCIAL_MEDIA_LINKS: "social_links",
  FeatureType.CONTACT_FORM: "contact_form",
  FeatureType.CALENDAR_INTEGRATION: "calendar",
  FeatureType.LANGUAGE_PROFICIENCY: "language_proficiency",
  FeatureType.CERTIFICATION_BADGES: "certification_badges",
  FeatureType.ACHIEVEMENTS_SHOWCASE: "achievements_showcase",
  FeatureType.VIDEO_INTRODUCTION: "video_introduction",
  FeatureType.PORTFOLIO_GALLERY: "portfolio_gallery",
  FeatureType.TESTIMONIALS_CAROUSEL: "testimonials_carousel",
  FeatureType.PERSONALITY_INSIGHTS: "personality_insights",
}

# Rendering order of the slots inside a layout.
SLOT_ORDER: tuple[str, ...] = (
  "qr_code",
  "podcast_player",
  "timeline",
  "skills_chart",
  "social_links",
  "achievements_showcase",
  "language_proficiency",
  "certification_badges",
  "video_introduction",
  "calendar",
  "contact_form",
  "portfolio_gallery",
  "testimonials_carousel",
  "personality_insights",
)


def resolve_feature(feature_id: str) -> FeatureType | None:
  """Map a raw id (or legacy alias) onto the closed enum; None when unknown."""
  normalized = feature_id.strip().lower()
  if normalized in FEATURE_ALIASES:
    return FEATURE_ALIASES[normalized]
  try:
    return FeatureType(normalized)
  except ValueError:
    return None


@dataclass(frozen=True)
class FeatureOutput:
  html: str = ""
  styles: str = ""
  scripts: str = ""


class FeatureGenerator(Protocol):
  feature_type: FeatureType

  async def generate(self, resume: ParsedResume, job_id: str, options: Mapping[str, Any]) -> FeatureOutput:
    """Render the fragment, styles and scripts for one feature."""


class TemplateFeature:
  """Generator backed by a fragment template under ``templates/features``.

  Subclasses provide ``build_context``; returning None means the résumé has no
  data for the feature and an empty fragment is produced.
  """

  feature_type: ClassVar[FeatureType]
  template_name: ClassVar[str]
  styles: ClassVar[str] = ""
  scripts: ClassVar[str] = ""

  def build_context(self, resume: ParsedResume, job_id: str, options: Mapping[str, Any]) -> dict[str, Any] | None:
    raise NotImplementedError

  async def generate(self, resume: ParsedResume, job_id: str, options: Mapping[str, Any]) -> FeatureOutput:
    context = self.build_context(resume, job_id, options)
    if context is None:
      return FeatureOutput()
    template = get_environment().get_template(f"features/{self.template_name}")
    html = template.render(job_id=job_id, feature_id=self.feature_type.value, **context)
    return FeatureOutput(html=html.strip(), styles=self.styles.strip(), scripts=self.scripts.strip())


def enrichment_of(options: Mapping[str, Any], kind: str) -> dict[str, Any]:
  """Return one enrichment document from the options, or an empty dict."""
  enrichment = options.get("enrichment") or {}
  document = enrichment.get(kind)
  return document if isinstance(document, dict) else {}
