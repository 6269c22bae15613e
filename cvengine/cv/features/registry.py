"""Feature registry: resolves generators and runs them with failure isolation."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from cvengine.cv.features.base import FEATURE_SLOTS, FeatureGenerator, FeatureOutput, FeatureType, resolve_feature
from cvengine.cv.features.insights import PersonalityInsightsFeature
from cvengine.cv.features.multimedia import PodcastFeature, PortfolioGalleryFeature, QrCodeFeature, VideoIntroductionFeature
from cvengine.cv.features.profile import CalendarFeature, ContactFormFeature, LanguageProficiencyFeature, SkillsVisualizationFeature, SocialLinksFeature
from cvengine.cv.features.showcase import AchievementsShowcaseFeature, CertificationBadgesFeature, InteractiveTimelineFeature, TestimonialsCarouselFeature
from cvengine.cv.models import ParsedResume

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, str, str | None], Awaitable[Any]]

# privacy-mode is applied to the résumé before rendering and has no generator.
DEFAULT_FACTORIES: dict[FeatureType, Callable[[], FeatureGenerator]] = {
  FeatureType.EMBED_QR_CODE: QrCodeFeature,
  FeatureType.GENERATE_PODCAST: PodcastFeature,
  FeatureType.INTERACTIVE_TIMELINE: InteractiveTimelineFeature,
  FeatureType.SKILLS_VISUALIZATION: SkillsVisualizationFeature,
  FeatureType.SOCIAL_MEDIA_LINKS: SocialLinksFeature,
  FeatureType.CONTACT_FORM: ContactFormFeature,
  FeatureType.CALENDAR_INTEGRATION: CalendarFeature,
  FeatureType.LANGUAGE_PROFICIENCY: LanguageProficiencyFeature,
  FeatureType.CERTIFICATION_BADGES: CertificationBadgesFeature,
  FeatureType.ACHIEVEMENTS_SHOWCASE: AchievementsShowcaseFeature,
  FeatureType.VIDEO_INTRODUCTION: VideoIntroductionFeature,
  FeatureType.PORTFOLIO_GALLERY: PortfolioGalleryFeature,
  FeatureType.TESTIMONIALS_CAROUSEL: TestimonialsCarouselFeature,
  FeatureType.PERSONALITY_INSIGHTS: PersonalityInsightsFeature,
}


@dataclass
class FeatureBundle:
  """Combined output of one feature pass."""

  fragments: dict[str, str] = field(default_factory=dict)
  combined_styles: str = ""
  combined_scripts: str = ""
  completed: list[str] = field(default_factory=list)
  failed: dict[str, str] = field(default_factory=dict)


def parse_features(feature_ids: Iterable[str] | None) -> list[FeatureType]:
  """Normalize requested ids: unknown ids dropped, duplicates collapsed keeping first order."""
  parsed: list[FeatureType] = []
  for raw in feature_ids or ():
    if not isinstance(raw, str):
      continue
    feature = resolve_feature(raw)
    if feature is None:
      logger.debug("Dropping unknown feature id %r", raw)
      continue
    if feature not in parsed:
      parsed.append(feature)
  return parsed


class FeatureRegistry:
  """Resolve and cache feature generators; one instance per process, passed explicitly."""

  def __init__(self, factories: Mapping[FeatureType, Callable[[], FeatureGenerator]] | None = None) -> None:
    self._factories = dict(DEFAULT_FACTORIES if factories is None else factories)
    self._cache: dict[FeatureType, FeatureGenerator] = {}

  def supports(self, feature: FeatureType) -> bool:
    return feature in self._factories

  def get(self, feature: FeatureType) -> FeatureGenerator | None:
    """Return the cached generator, creating it on first use."""
    generator = self._cache.get(feature)
    if generator is None:
      factory = self._factories.get(feature)
      if factory is None:
        return None
      generator = factory()
      self._cache[feature] = generator
    return generator

  async def generate_features(self, resume: ParsedResume, job_id: str, feature_ids: Iterable[str], options: Mapping[str, Any] | None = None, on_progress: ProgressCallback | None = None) -> FeatureBundle:
    """Run each requested generator in order; a failing generator never stops the rest."""
    bundle = FeatureBundle()
    styles: list[str] = []
    scripts: list[str] = []
    options = options or {}

    for feature in parse_features(feature_ids):
      generator = self.get(feature)
      if generator is None:
        continue

      await _notify(on_progress, feature.value, "processing", None)
      try:
        output: FeatureOutput = await generator.generate(resume, job_id, options)
      except Exception as exc:  # noqa: BLE001
        logger.warning("Feature generation failed job_id=%s feature=%s error=%s", job_id, feature.value, exc, exc_info=True)
        bundle.failed[feature.value] = str(exc) or type(exc).__name__
        await _notify(on_progress, feature.value, "failed", bundle.failed[feature.value])
        continue

      slot = FEATURE_SLOTS.get(feature)
      if slot and output.html:
        bundle.fragments[slot] = output.html
      if output.styles:
        styles.append(output.styles)
      if output.scripts:
        scripts.append(output.scripts)
      bundle.completed.append(feature.value)
      await _notify(on_progress, feature.value, "completed", None)

    bundle.combined_styles = "\n".join(styles)
    bundle.combined_scripts = "\n".join(scripts)
    return bundle


async def _notify(on_progress: ProgressCallback | None, feature_id: str, status: str, error: str | None) -> None:
  if on_progress is not None:
    await on_progress(feature_id, status, error)
