"""Features built from contact details and the skills block."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from cvengine.cv.features.base import FeatureType, TemplateFeature
from cvengine.cv.models import ParsedResume

# "Spanish (Fluent)", "German - B2", "French: native"
_LANGUAGE_LEVEL_RE = re.compile(r"^\s*(?P<name>[^(\-:]+?)\s*(?:[(\-:]\s*(?P<level>[^)]+?)\s*\)?)?\s*$")

LANGUAGE_LEVELS: dict[str, int] = {
  "native": 100,
  "bilingual": 100,
  "c2": 95,
  "fluent": 90,
  "c1": 85,
  "advanced": 80,
  "professional": 75,
  "b2": 70,
  "upper intermediate": 65,
  "intermediate": 55,
  "b1": 50,
  "conversational": 45,
  "a2": 35,
  "elementary": 30,
  "basic": 25,
  "a1": 20,
  "beginner": 20,
}
DEFAULT_LANGUAGE_LEVEL = 60


def parse_language(entry: str) -> tuple[str, str | None, int]:
  """Split a free-form language entry into (name, level label, proficiency percent)."""
  match = _LANGUAGE_LEVEL_RE.match(entry)
  if match is None:
    return entry.strip(), None, DEFAULT_LANGUAGE_LEVEL
  name = match.group("name").strip()
  level = match.group("level")
  if not level:
    return name, None, DEFAULT_LANGUAGE_LEVEL
  return name, level.strip(), LANGUAGE_LEVELS.get(level.strip().lower(), DEFAULT_LANGUAGE_LEVEL)


def _normalize_url(raw: str) -> str:
  if raw.startswith(("http://", "https://", "mailto:")):
    return raw
  return f"https://{raw}"


class SocialLinksFeature(TemplateFeature):
  feature_type = FeatureType.SOCIAL_MEDIA_LINKS
  template_name = "social_links.html.jinja"
  styles = """
.social-links ul { display: flex; flex-wrap: wrap; gap: 0.75rem; list-style: none; padding: 0; }
.social-links a { padding: 0.35rem 0.9rem; border-radius: 999px; background: #eef2ff; color: #3730a3; text-decoration: none; }
"""

  def build_context(self, resume: ParsedResume, job_id: str, options: Mapping[str, Any]) -> dict[str, Any] | None:
    info = resume.personal_info
    links = []
    if info.linkedin:
      links.append({"label": "LinkedIn", "url": _normalize_url(info.linkedin)})
    if info.github:
      links.append({"label": "GitHub", "url": _normalize_url(info.github)})
    if info.website:
      links.append({"label": "Website", "url": _normalize_url(info.website)})
    if info.email:
      links.append({"label": "Email", "url": f"mailto:{info.email}"})
    if not links:
      return None
    return {"links": links}


class SkillsVisualizationFeature(TemplateFeature):
  feature_type = FeatureType.SKILLS_VISUALIZATION
  template_name = "skills_chart.html.jinja"
  styles = """
.skills-chart .skill-row { display: flex; align-items: center; gap: 0.75rem; margin-bottom: 0.4rem; }
.skills-chart .skill-name { width: 10rem; }
.skills-chart .skill-bar { flex: 1; height: 0.5rem; background: #e2e8f0; border-radius: 4px; overflow: hidden; }
.skills-chart .skill-fill { height: 100%; background: #6366f1; }
"""

  def build_context(self, resume: ParsedResume, job_id: str, options: Mapping[str, Any]) -> dict[str, Any] | None:
    if not (resume.skills.technical or resume.skills.soft):
      return None
    usage = _technology_usage(resume)
    peak = max(usage.values(), default=0)
    technical = [{"name": skill, "level": _skill_level(usage.get(skill.lower(), 0), peak)} for skill in resume.skills.technical]
    return {"technical": technical, "soft": list(resume.skills.soft)}


def _technology_usage(resume: ParsedResume) -> dict[str, int]:
  counts: dict[str, int] = {}
  for role in resume.experience:
    for technology in role.technologies:
      counts[technology.lower()] = counts.get(technology.lower(), 0) + 1
  for project in resume.projects:
    for technology in project.technologies:
      counts[technology.lower()] = counts.get(technology.lower(), 0) + 1
  return counts


def _skill_level(uses: int, peak: int) -> int:
  # Skills never mentioned in roles or projects still get a visible bar.
  if peak == 0 or uses == 0:
    return 50
  return 50 + round(50 * uses / peak)


class LanguageProficiencyFeature(TemplateFeature):
  feature_type = FeatureType.LANGUAGE_PROFICIENCY
  template_name = "language_proficiency.html.jinja"
  styles = """
.language-proficiency .language { margin-bottom: 0.5rem; }
.language-proficiency .language-meter { height: 0.4rem; background: #e2e8f0; border-radius: 4px; }
.language-proficiency .language-meter span { display: block; height: 100%; background: #0ea5e9; border-radius: 4px; }
"""

  def build_context(self, resume: ParsedResume, job_id: str, options: Mapping[str, Any]) -> dict[str, Any] | None:
    if not resume.skills.languages:
      return None
    languages = []
    for entry in resume.skills.languages:
      name, level, percent = parse_language(entry)
      languages.append({"name": name, "level": level, "percent": percent})
    return {"languages": languages}


class ContactFormFeature(TemplateFeature):
  feature_type = FeatureType.CONTACT_FORM
  template_name = "contact_form.html.jinja"
  styles = """
.contact-form form { display: grid; gap: 0.6rem; max-width: 480px; }
.contact-form input, .contact-form textarea { padding: 0.5rem; border: 1px solid #cbd5e1; border-radius: 6px; }
"""
  scripts = """
document.querySelectorAll('.contact-form form').forEach(function (form) {
  form.addEventListener('submit', function (event) {
    if (!form.action.startsWith('mailto:')) { return; }
    event.preventDefault();
    var data = new FormData(form);
    window.location.href = form.action + '?subject=' + encodeURIComponent('Message from ' + data.get('name')) + '&body=' + encodeURIComponent(data.get('message'));
  });
});
"""

  def build_context(self, resume: ParsedResume, job_id: str, options: Mapping[str, Any]) -> dict[str, Any] | None:
    action = options.get("contact_endpoint")
    if not action and resume.personal_info.email:
      action = f"mailto:{resume.personal_info.email}"
    if not action:
      return None
    return {"action": action, "name": resume.display_name}


class CalendarFeature(TemplateFeature):
  feature_type = FeatureType.CALENDAR_INTEGRATION
  template_name = "calendar.html.jinja"
  styles = """
.calendar-booking { border: 1px dashed #94a3b8; border-radius: 10px; padding: 1rem; text-align: center; }
.calendar-booking a { font-weight: 600; color: #0f766e; }
"""

  def build_context(self, resume: ParsedResume, job_id: str, options: Mapping[str, Any]) -> dict[str, Any] | None:
    booking_url = options.get("calendar_url")
    if not booking_url and resume.personal_info.email:
      booking_url = f"mailto:{resume.personal_info.email}?subject=Meeting%20request"
    if not booking_url:
      return None
    return {"booking_url": booking_url, "name": resume.display_name, "location": resume.personal_info.location}
