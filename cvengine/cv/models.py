"""Structured résumé model consumed by the generation pipeline.

Every field is optional: the parsing stage emits whatever it could extract and
the renderers omit sections with no data. Input is accepted in the parser's
camelCase wire format as well as snake_case.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class ResumeModel(BaseModel):
  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class PersonalInfo(ResumeModel):
  name: str | None = None
  email: str | None = None
  phone: str | None = None
  location: str | None = None
  linkedin: str | None = None
  github: str | None = None
  website: str | None = None


class Experience(ResumeModel):
  company: str | None = None
  position: str | None = None
  duration: str | None = None
  start_date: str | None = None
  end_date: str | None = None
  location: str | None = None
  description: str | None = None
  achievements: list[str] = Field(default_factory=list)
  technologies: list[str] = Field(default_factory=list)

  @property
  def period(self) -> str | None:
    """Human-readable date range, falling back to the free-form duration."""
    if self.start_date or self.end_date:
      return f"{self.start_date or ''} - {self.end_date or 'Present'}".strip(" -")
    return self.duration


class Education(ResumeModel):
  institution: str | None = None
  degree: str | None = None
  field: str | None = None
  graduation_date: str | None = None
  gpa: str | None = None
  honors: list[str] = Field(default_factory=list)


class Skills(ResumeModel):
  technical: list[str] = Field(default_factory=list)
  soft: list[str] = Field(default_factory=list)
  languages: list[str] = Field(default_factory=list)

  @property
  def is_empty(self) -> bool:
    return not (self.technical or self.soft or self.languages)


class Certification(ResumeModel):
  name: str | None = None
  issuer: str | None = None
  date: str | None = None
  credential_id: str | None = None


class Project(ResumeModel):
  name: str | None = None
  description: str | None = None
  technologies: list[str] = Field(default_factory=list)
  link: str | None = None


class Reference(ResumeModel):
  name: str | None = None
  position: str | None = None
  company: str | None = None
  contact: str | None = None


class ParsedResume(ResumeModel):
  """The résumé document as stored on the job record."""

  personal_info: PersonalInfo = Field(default_factory=PersonalInfo)
  summary: str | None = None
  experience: list[Experience] = Field(default_factory=list)
  education: list[Education] = Field(default_factory=list)
  skills: Skills = Field(default_factory=Skills)
  certifications: list[Certification] = Field(default_factory=list)
  projects: list[Project] = Field(default_factory=list)
  achievements: list[str] = Field(default_factory=list)
  references: list[Reference] = Field(default_factory=list)

  @model_validator(mode="before")
  @classmethod
  def normalize_sections(cls, values: Any) -> Any:
    if not isinstance(values, dict):
      return values

    data = dict(values)
    # Older parser output stored skills as a flat list of technical skills.
    skills = data.get("skills")
    if isinstance(skills, list):
      data["skills"] = {"technical": [str(skill) for skill in skills if skill]}

    # Explicit nulls from the parser mean "not extracted".
    for key in ("personalInfo", "personal_info", "skills"):
      if key in data and data[key] is None:
        data.pop(key)
    for key in ("experience", "education", "certifications", "projects", "achievements", "references"):
      if data.get(key) is None:
        data.pop(key, None)
    return data

  @property
  def display_name(self) -> str:
    return self.personal_info.name or "Professional Name"
