"""Features that re-present résumé history: timeline, badges, achievements, testimonials."""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from typing import Any

from cvengine.cv.features.base import FeatureType, TemplateFeature
from cvengine.cv.models import ParsedResume

MAX_ACHIEVEMENTS = 6
_YEAR_RE = re.compile(r"(19|20)\d{2}")
_METRIC_RE = re.compile(r"\d+(?:[.,]\d+)?\s*(?:%|x|k|m|\+)?", re.IGNORECASE)


def _first_year(*values: str | None) -> int | None:
  for value in values:
    if value:
      match = _YEAR_RE.search(value)
      if match:
        return int(match.group(0))
  return None


class InteractiveTimelineFeature(TemplateFeature):
  feature_type = FeatureType.INTERACTIVE_TIMELINE
  template_name = "timeline.html.jinja"
  styles = """
.cv-timeline { border-left: 3px solid #6366f1; margin-left: 0.5rem; padding-left: 1.25rem; }
.cv-timeline .timeline-event { position: relative; margin-bottom: 1rem; }
.cv-timeline .timeline-event::before { content: ''; position: absolute; left: -1.72rem; top: 0.3rem; width: 0.75rem; height: 0.75rem; border-radius: 50%; background: #6366f1; }
.cv-timeline .timeline-event.education::before { background: #f59e0b; }
"""

  def build_context(self, resume: ParsedResume, job_id: str, options: Mapping[str, Any]) -> dict[str, Any] | None:
    events = []
    for index, role in enumerate(resume.experience):
      events.append({"id": f"work-{index}", "type": "work", "title": role.position or "Role", "organization": role.company, "period": role.period, "year": _first_year(role.start_date, role.duration), "current": not role.end_date and bool(role.start_date)})
    for index, school in enumerate(resume.education):
      events.append({"id": f"education-{index}", "type": "education", "title": school.degree or "Education", "organization": school.institution, "period": school.graduation_date, "year": _first_year(school.graduation_date), "current": False})
    if not events:
      return None
    # Most recent first; undated events sink to the end in their original order.
    events.sort(key=lambda event: event["year"] or 0, reverse=True)
    props = {"jobId": job_id, "events": events, "title": options.get("timeline_title") or f"{resume.display_name}'s Career Timeline"}
    return {"events": events, "props_json": json.dumps(props), "title": props["title"]}


class CertificationBadgesFeature(TemplateFeature):
  feature_type = FeatureType.CERTIFICATION_BADGES
  template_name = "certification_badges.html.jinja"
  styles = """
.certification-badges .badges { display: flex; flex-wrap: wrap; gap: 0.75rem; }
.certification-badges .badge { border: 1px solid #c7d2fe; border-radius: 10px; padding: 0.6rem 0.9rem; background: #f5f7ff; }
.certification-badges .badge-issuer { font-size: 0.8rem; color: #475569; }
"""

  def build_context(self, resume: ParsedResume, job_id: str, options: Mapping[str, Any]) -> dict[str, Any] | None:
    certifications = [certification for certification in resume.certifications if certification.name]
    if not certifications:
      return None
    return {"certifications": certifications}


class AchievementsShowcaseFeature(TemplateFeature):
  feature_type = FeatureType.ACHIEVEMENTS_SHOWCASE
  template_name = "achievements_showcase.html.jinja"
  styles = """
.achievements-showcase .achievement-cards { display: grid; grid-template-columns: repeat(auto-fill, minmax(240px, 1fr)); gap: 0.9rem; }
.achievements-showcase .achievement-card { border-radius: 10px; padding: 0.9rem; background: #fefce8; border: 1px solid #fde68a; }
.achievements-showcase .achievement-metric { font-size: 1.4rem; font-weight: 700; color: #a16207; }
"""

  def build_context(self, resume: ParsedResume, job_id: str, options: Mapping[str, Any]) -> dict[str, Any] | None:
    candidates: list[tuple[str, str | None]] = [(item, None) for item in resume.achievements]
    for role in resume.experience:
      candidates.extend((item, role.company) for item in role.achievements)

    seen: set[str] = set()
    cards = []
    for text, source in candidates:
      key = text.strip().lower()
      if not key or key in seen:
        continue
      seen.add(key)
      metric = _METRIC_RE.search(text)
      cards.append({"text": text.strip(), "source": source, "metric": metric.group(0).strip() if metric else None})

    if not cards:
      return None
    # Quantified achievements lead the showcase.
    cards.sort(key=lambda card: card["metric"] is None)
    return {"cards": cards[:MAX_ACHIEVEMENTS]}


class TestimonialsCarouselFeature(TemplateFeature):
  feature_type = FeatureType.TESTIMONIALS_CAROUSEL
  template_name = "testimonials_carousel.html.jinja"
  styles = """
.testimonials-carousel .testimonial { display: none; padding: 1rem 1.25rem; border-left: 4px solid #14b8a6; background: #f0fdfa; }
.testimonials-carousel .testimonial.active { display: block; }
.testimonials-carousel .testimonial-author { font-weight: 600; margin-top: 0.5rem; }
"""
  scripts = """
document.querySelectorAll('.testimonials-carousel').forEach(function (carousel) {
  var slides = carousel.querySelectorAll('.testimonial');
  if (slides.length < 2) { return; }
  var index = 0;
  setInterval(function () {
    slides[index].classList.remove('active');
    index = (index + 1) % slides.length;
    slides[index].classList.add('active');
  }, 6000);
});
"""

  def build_context(self, resume: ParsedResume, job_id: str, options: Mapping[str, Any]) -> dict[str, Any] | None:
    testimonials = []
    for entry in options.get("testimonials") or []:
      if isinstance(entry, Mapping) and entry.get("quote"):
        testimonials.append({"quote": entry["quote"], "author": entry.get("author"), "role": entry.get("role")})
    if not testimonials:
      # References without quotes still make a usable "available on request" card.
      for reference in resume.references:
        if reference.name:
          role = ", ".join(part for part in (reference.position, reference.company) if part) or None
          testimonials.append({"quote": None, "author": reference.name, "role": role})
    if not testimonials:
      return None
    return {"testimonials": testimonials}
