"""Jinja2-backed document renderers, one per visual template."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from markupsafe import Markup

from cvengine.cv.features.base import SLOT_ORDER, FeatureType, resolve_feature
from cvengine.cv.features.registry import FeatureBundle
from cvengine.cv.models import ParsedResume
from cvengine.cv.templating import get_environment
from cvengine.utils.time import now_iso


class TemplateRenderer(Protocol):
  template_id: str

  def render(self, resume: ParsedResume, job_id: str, feature_ids: Iterable[str], features: FeatureBundle) -> str:
    """Compose the full HTML document."""


class JinjaTemplateRenderer:
  """Render a layout that extends ``base.html.jinja``.

  Résumé values are autoescaped. Feature fragments, styles and scripts come from
  our own generators and are inserted as trusted markup.
  """

  def __init__(self, template_id: str) -> None:
    self.template_id = template_id
    self._template = get_environment().get_template(f"{template_id}.html.jinja")

  def render(self, resume: ParsedResume, job_id: str, feature_ids: Iterable[str], features: FeatureBundle) -> str:
    requested = {resolve_feature(feature_id) for feature_id in feature_ids}
    slots = [(slot, Markup(features.fragments[slot])) for slot in SLOT_ORDER if features.fragments.get(slot)]
    return self._template.render(
      resume=resume,
      job_id=job_id,
      template_id=self.template_id,
      slots=slots,
      feature_styles=Markup(features.combined_styles),
      feature_scripts=Markup(features.combined_scripts),
      include_job_meta=FeatureType.GENERATE_PODCAST in requested,
      generated_at=now_iso(),
    )
