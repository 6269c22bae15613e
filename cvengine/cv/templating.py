"""Shared Jinja2 environment for document layouts and feature fragments."""

from __future__ import annotations

from functools import lru_cache

from jinja2 import Environment, PackageLoader, select_autoescape


@lru_cache(maxsize=1)
def get_environment() -> Environment:
  """Build the environment once; templates ship inside the package."""
  env = Environment(
    loader=PackageLoader("cvengine.cv", "templates"),
    autoescape=select_autoescape(enabled_extensions=("html", "jinja"), default_for_string=True),
    trim_blocks=True,
    lstrip_blocks=True,
  )
  env.filters["initials"] = _initials
  return env


def _initials(name: str | None) -> str:
  if not name:
    return ""
  return "".join(part[0] for part in name.split() if part)[:3].upper()
