"""Registry of visual templates with a safe default."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping

from cvengine.cv.layouts.renderer import JinjaTemplateRenderer, TemplateRenderer

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE = "modern"
TEMPLATE_IDS: tuple[str, ...] = ("modern", "classic", "creative")


class TemplateRegistry:
  """Hand out cached renderers; unknown ids fall back to the default template."""

  def __init__(self, factories: Mapping[str, Callable[[], TemplateRenderer]] | None = None, default_template: str = DEFAULT_TEMPLATE) -> None:
    if factories is None:
      factories = {template_id: _jinja_factory(template_id) for template_id in TEMPLATE_IDS}
    if default_template not in factories:
      raise ValueError(f"Default template {default_template!r} is not registered.")
    self._factories = dict(factories)
    self._default = default_template
    self._cache: dict[str, TemplateRenderer] = {}

  @property
  def template_ids(self) -> tuple[str, ...]:
    return tuple(self._factories)

  def resolve_id(self, template_id: str | None) -> str:
    """Normalize a requested template id, substituting the default when unknown."""
    normalized = (template_id or "").strip().lower()
    if normalized in self._factories:
      return normalized
    logger.debug("Unknown template %r; using %s", template_id, self._default)
    return self._default

  def get(self, template_id: str | None) -> TemplateRenderer:
    resolved = self.resolve_id(template_id)
    renderer = self._cache.get(resolved)
    if renderer is None:
      renderer = self._factories[resolved]()
      self._cache[resolved] = renderer
    return renderer


def _jinja_factory(template_id: str) -> Callable[[], TemplateRenderer]:
  return lambda: JinjaTemplateRenderer(template_id)
