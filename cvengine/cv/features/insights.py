"""Personality insights rendered from the upstream analysis document."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from cvengine.cv.features.base import FeatureType, TemplateFeature, enrichment_of
from cvengine.cv.models import ParsedResume


def _clamp_score(raw: Any) -> int | None:
  try:
    score = float(raw)
  except (TypeError, ValueError):
    return None
  # Analysis output mixes 0-1 and 0-100 scales.
  if score <= 1:
    score *= 100
  return max(0, min(100, round(score)))


class PersonalityInsightsFeature(TemplateFeature):
  feature_type = FeatureType.PERSONALITY_INSIGHTS
  template_name = "personality_insights.html.jinja"
  styles = """
.personality-insights .trait { display: grid; grid-template-columns: 10rem 1fr 3rem; align-items: center; gap: 0.6rem; margin-bottom: 0.35rem; }
.personality-insights .trait-bar { height: 0.45rem; background: #ede9fe; border-radius: 4px; }
.personality-insights .trait-bar span { display: block; height: 100%; background: #7c3aed; border-radius: 4px; }
"""

  def build_context(self, resume: ParsedResume, job_id: str, options: Mapping[str, Any]) -> dict[str, Any] | None:
    analysis = enrichment_of(options, "personality")
    traits = []
    raw_traits = analysis.get("traits") or {}
    if isinstance(raw_traits, Mapping):
      for name, raw_score in raw_traits.items():
        score = _clamp_score(raw_score)
        if score is not None:
          traits.append({"name": str(name).replace("_", " ").title(), "score": score})
    traits.sort(key=lambda trait: trait["score"], reverse=True)

    summary = analysis.get("summary")
    work_style = analysis.get("work_style") or analysis.get("workStyle")
    if not (traits or summary or work_style):
      return None
    strengths = [str(item) for item in analysis.get("strengths") or []]
    return {"traits": traits, "summary": summary, "work_style": work_style, "strengths": strengths, "name": resume.display_name}
