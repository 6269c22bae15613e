from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import pytest

from cvengine.cv.features.base import FEATURE_SLOTS, FeatureOutput, FeatureType, resolve_feature
from cvengine.cv.features.multimedia import PodcastFeature, QrCodeFeature
from cvengine.cv.features.profile import LanguageProficiencyFeature, parse_language
from cvengine.cv.features.registry import DEFAULT_FACTORIES, FeatureRegistry, parse_features
from cvengine.cv.features.showcase import AchievementsShowcaseFeature
from cvengine.cv.models import ParsedResume
from tests.fakes import SAMPLE_RESUME


class ExplodingFeature:
  feature_type = FeatureType.GENERATE_PODCAST

  async def generate(self, resume: ParsedResume, job_id: str, options: Mapping[str, Any]) -> FeatureOutput:
    raise RuntimeError("audio backend offline")


@pytest.fixture
def resume() -> ParsedResume:
  return ParsedResume.model_validate(SAMPLE_RESUME)


def test_parse_features_drops_unknown_and_duplicates() -> None:
  parsed = parse_features(["generate-podcast", "holographic-cv", "embed-qr-code", "generate-podcast", "Availability-Calendar"])
  assert parsed == [FeatureType.GENERATE_PODCAST, FeatureType.EMBED_QR_CODE, FeatureType.CALENDAR_INTEGRATION]
  assert parse_features(None) == []


def test_legacy_aliases_resolve_to_current_ids() -> None:
  assert resolve_feature("achievement-highlighting") is FeatureType.ACHIEVEMENTS_SHOWCASE
  assert resolve_feature("nope") is None


def test_every_generator_has_a_slot() -> None:
  assert set(DEFAULT_FACTORIES) == set(FEATURE_SLOTS)
  assert FeatureType.PRIVACY_MODE not in DEFAULT_FACTORIES


def test_registry_caches_generators() -> None:
  registry = FeatureRegistry()
  assert registry.get(FeatureType.EMBED_QR_CODE) is registry.get(FeatureType.EMBED_QR_CODE)
  assert registry.get(FeatureType.PRIVACY_MODE) is None
  assert not registry.supports(FeatureType.PRIVACY_MODE)


@pytest.mark.anyio
async def test_failing_feature_does_not_stop_the_others(resume: ParsedResume) -> None:
  registry = FeatureRegistry({FeatureType.GENERATE_PODCAST: ExplodingFeature, FeatureType.EMBED_QR_CODE: QrCodeFeature})
  events: list[tuple[str, str, str | None]] = []

  async def on_progress(feature_id: str, status: str, error: str | None) -> None:
    events.append((feature_id, status, error))

  bundle = await registry.generate_features(resume, "job-1", ["generate-podcast", "embed-qr-code"], {"profile_url": "https://cv.test/cv/job-1"}, on_progress)

  assert bundle.completed == ["embed-qr-code"]
  assert bundle.failed == {"generate-podcast": "audio backend offline"}
  assert "qr_code" in bundle.fragments
  assert "podcast_player" not in bundle.fragments
  assert events == [
    ("generate-podcast", "processing", None),
    ("generate-podcast", "failed", "audio backend offline"),
    ("embed-qr-code", "processing", None),
    ("embed-qr-code", "completed", None),
  ]


@pytest.mark.anyio
async def test_progress_callback_errors_propagate(resume: ParsedResume) -> None:
  registry = FeatureRegistry({FeatureType.EMBED_QR_CODE: QrCodeFeature})

  async def on_progress(feature_id: str, status: str, error: str | None) -> None:
    raise LookupError("job gone")

  with pytest.raises(LookupError):
    await registry.generate_features(resume, "job-1", ["embed-qr-code"], {}, on_progress)


@pytest.mark.anyio
async def test_qr_code_encodes_profile_url(resume: ParsedResume) -> None:
  output = await QrCodeFeature().generate(resume, "job-1", {"profile_url": "https://cv.test/cv/job-1"})
  assert "data=https%3A%2F%2Fcv.test%2Fcv%2Fjob-1" in output.html
  assert 'data-feature="embed-qr-code"' in output.html


@pytest.mark.anyio
async def test_podcast_renders_placeholder_until_audio_exists(resume: ParsedResume) -> None:
  pending = await PodcastFeature().generate(resume, "job-1", {})
  assert 'data-status="pending"' in pending.html
  assert "<audio" not in pending.html

  ready = await PodcastFeature().generate(resume, "job-1", {"enrichment": {"podcast": {"audio_url": "https://media.test/p.mp3", "duration": "4:12"}}})
  assert 'data-status="ready"' in ready.html
  assert 'src="https://media.test/p.mp3"' in ready.html


@pytest.mark.anyio
async def test_feature_without_data_renders_nothing() -> None:
  output = await AchievementsShowcaseFeature().generate(ParsedResume(), "job-1", {})
  assert output == FeatureOutput()


@pytest.mark.anyio
async def test_achievements_put_quantified_results_first() -> None:
  resume = ParsedResume.model_validate({"achievements": ["Led the guild", "Grew revenue by 35%", "led the guild"]})
  output = await AchievementsShowcaseFeature().generate(resume, "job-1", {})
  assert output.html.index("Grew revenue") < output.html.index("Led the guild")
  assert output.html.count("Led the guild") == 1


@pytest.mark.anyio
async def test_language_proficiency_reads_levels(resume: ParsedResume) -> None:
  output = await LanguageProficiencyFeature().generate(resume, "job-1", {})
  assert "Spanish" in output.html
  assert parse_language("German")[0] == "German"
