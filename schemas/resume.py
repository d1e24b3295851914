from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class _Record(BaseModel):
    # The browser form posts camelCase keys; Python callers use snake_case.
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )

    @field_validator("*", mode="before")
    @classmethod
    def coerce_missing(cls, v, info):  # type: ignore
        annotation = cls.model_fields[info.field_name].annotation
        if annotation is str:
            return _coerce_text(v)
        if v is None:
            return cls.model_fields[info.field_name].get_default(call_default_factory=True)
        return v


class PersonalInfo(_Record):
    full_name: str = ""
    last_name: str = ""
    job_role: str = ""
    address: str = ""
    city: str = ""
    zip: str = ""
    phone: str = ""
    email: str = ""
    portfolio: str = ""
    linkedin: str = ""


class ExperienceEntry(_Record):
    years: str = ""
    position: str = ""
    company: str = ""
    location: str = ""
    description: str = ""


class EducationEntry(_Record):
    years: str = ""
    degree: str = ""
    institution: str = ""
    location: str = ""
    details: str = ""


class SkillEntry(_Record):
    name: str = ""


class ProjectEntry(_Record):
    name: str = ""
    description: str = ""


class CertificationEntry(_Record):
    name: str = ""
    issuer: str = ""


class AdditionalInfoEntry(_Record):
    category: str = Field(default="", alias="type")
    description: str = ""


class Resume(_Record):
    personal_info: PersonalInfo = Field(default_factory=PersonalInfo)
    summary: str = ""
    experience: List[ExperienceEntry] = Field(default_factory=list)
    education: List[EducationEntry] = Field(default_factory=list)
    skills: List[SkillEntry] = Field(default_factory=list)
    projects: List[ProjectEntry] = Field(default_factory=list)
    certifications: List[CertificationEntry] = Field(default_factory=list)
    additional_info: List[AdditionalInfoEntry] = Field(default_factory=list)

    @field_validator("skills", mode="before")
    @classmethod
    def coerce_skills(cls, v):  # type: ignore
        return [
            item if isinstance(item, (dict, BaseModel)) else {"name": item}
            for item in _coerce_list(v)
        ]

    @field_validator(
        "experience", "education", "projects", "certifications", "additional_info",
        mode="before",
    )
    @classmethod
    def coerce_sections(cls, v):  # type: ignore
        return _coerce_list(v)

    def to_form_json(self) -> dict:
        """Dump with the camelCase keys the editor form uses."""
        return self.model_dump(by_alias=True)


def _coerce_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return str(value)


def _coerce_list(value):
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [item for item in value if item is not None]
    return [value]
