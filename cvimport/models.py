"""
Canonical CV draft models.

These dataclasses are the pipeline's output contract: fully typed,
every repeatable entity carrying a session-local identifier. Attribute
names are snake_case; ``as_dict()`` produces the camelCase wire shape
used by the schema and by downstream consumers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class SkillLevel(str, Enum):
    Beginner = "beginner"
    Intermediate = "intermediate"
    Advanced = "advanced"
    Expert = "expert"


class LanguageLevel(str, Enum):
    Basic = "basic"
    Conversational = "conversational"
    Professional = "professional"
    Fluent = "fluent"
    Native = "native"


def _compact(values: Dict[str, Any]) -> Dict[str, Any]:
    # Absent optional fields stay absent on the wire.
    return {k: v for k, v in values.items() if v is not None}


@dataclass(frozen=True)
class PersonalInfo:
    full_name: str
    job_title: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    linkedin: Optional[str] = None
    summary: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return _compact({
            "fullName": self.full_name,
            "jobTitle": self.job_title,
            "email": self.email,
            "phone": self.phone,
            "location": self.location,
            "website": self.website,
            "linkedin": self.linkedin,
            "summary": self.summary,
        })


@dataclass(frozen=True)
class Experience:
    id: str
    company: str
    position: str
    location: Optional[str] = None
    start_date: Optional[str] = None
    # Kept as provided even when current is True; consumers ignore it then.
    end_date: Optional[str] = None
    current: bool = False
    description: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return _compact({
            "id": self.id,
            "company": self.company,
            "position": self.position,
            "location": self.location,
            "startDate": self.start_date,
            "endDate": self.end_date,
            "current": self.current,
            "description": self.description,
        })


@dataclass(frozen=True)
class Education:
    id: str
    institution: str
    degree: str
    field: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    description: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return _compact({
            "id": self.id,
            "institution": self.institution,
            "degree": self.degree,
            "field": self.field,
            "startDate": self.start_date,
            "endDate": self.end_date,
            "description": self.description,
        })


@dataclass(frozen=True)
class Skill:
    id: str
    name: str
    level: SkillLevel

    def as_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "level": self.level.value}


@dataclass(frozen=True)
class Language:
    id: str
    name: str
    level: LanguageLevel

    def as_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "level": self.level.value}


@dataclass(frozen=True)
class Project:
    id: str
    name: str
    description: Optional[str] = None
    url: Optional[str] = None
    technologies: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return _compact({
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "url": self.url,
            "technologies": list(self.technologies),
        })


@dataclass(frozen=True)
class Certification:
    id: str
    name: str
    issuer: str
    date: Optional[str] = None
    url: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return _compact({
            "id": self.id,
            "name": self.name,
            "issuer": self.issuer,
            "date": self.date,
            "url": self.url,
        })


@dataclass
class CanonicalDraft:
    """
    The reviewed-before-apply result of one import.

    produced_by_extraction is the provenance flag downstream export logic
    reads to decide whether the free export path is available.
    """
    personal_info: PersonalInfo
    experience: List[Experience] = field(default_factory=list)
    education: List[Education] = field(default_factory=list)
    skills: List[Skill] = field(default_factory=list)
    languages: List[Language] = field(default_factory=list)
    projects: List[Project] = field(default_factory=list)
    certifications: List[Certification] = field(default_factory=list)
    produced_by_extraction: bool = True

    def entity_ids(self) -> List[str]:
        """All identifiers across every repeatable section, in document order."""
        ids: List[str] = []
        for section in (
            self.experience,
            self.education,
            self.skills,
            self.languages,
            self.projects,
            self.certifications,
        ):
            ids.extend(item.id for item in section)
        return ids

    def as_dict(self) -> Dict[str, Any]:
        return {
            "personalInfo": self.personal_info.as_dict(),
            "experience": [e.as_dict() for e in self.experience],
            "education": [e.as_dict() for e in self.education],
            "skills": [s.as_dict() for s in self.skills],
            "languages": [lang.as_dict() for lang in self.languages],
            "projects": [p.as_dict() for p in self.projects],
            "certifications": [c.as_dict() for c in self.certifications],
            "producedByExtraction": self.produced_by_extraction,
        }


__all__ = [
    "SkillLevel",
    "LanguageLevel",
    "PersonalInfo",
    "Experience",
    "Education",
    "Skill",
    "Language",
    "Project",
    "Certification",
    "CanonicalDraft",
]
