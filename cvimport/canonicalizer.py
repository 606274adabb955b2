"""
Canonicalization of validated structured drafts.

Turns the service's loosely typed (but schema-valid) JSON into a
CanonicalDraft: every element of every repeatable section gets a fresh
identifier and structural defaults are filled in. No semantic checks are
made here (date order, plausibility); that belongs to the reviewer.
"""

from __future__ import annotations

import uuid
from typing import Any, Callable, Dict, List, Optional, Set

from .logging_utils import LOG
from .models import (
    CanonicalDraft,
    Certification,
    Education,
    Experience,
    Language,
    LanguageLevel,
    PersonalInfo,
    Project,
    Skill,
    SkillLevel,
)

IdFactory = Callable[[], str]


def new_entity_id() -> str:
    """Random identifier; never derived from content."""
    return uuid.uuid4().hex[:12]


class _IdAllocator:
    def __init__(self, factory: IdFactory):
        self._factory = factory
        self._issued: Set[str] = set()

    def __call__(self) -> str:
        for _ in range(100):
            candidate = self._factory()
            if candidate and candidate not in self._issued:
                self._issued.add(candidate)
                return candidate
        raise RuntimeError("id factory keeps returning duplicate identifiers")


def _items(structured: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    return list(structured.get(key) or [])


def canonicalize(structured: Dict[str, Any], id_factory: Optional[IdFactory] = None) -> CanonicalDraft:
    """
    Build a CanonicalDraft from a schema-validated structured draft.

    Args:
        structured: The service's entities object, already validated
        id_factory: Identifier source (tests inject a counter); defaults
            to random ids

    Returns:
        CanonicalDraft with unique ids, empty lists for absent sections,
        current=False and technologies=[] where missing
    """
    next_id = _IdAllocator(id_factory or new_entity_id)
    info = structured.get("personalInfo") or {}

    draft = CanonicalDraft(
        personal_info=PersonalInfo(
            full_name=info.get("fullName"),
            job_title=info.get("jobTitle"),
            email=info.get("email"),
            phone=info.get("phone"),
            location=info.get("location"),
            website=info.get("website"),
            linkedin=info.get("linkedin"),
            summary=info.get("summary"),
        ),
        experience=[
            Experience(
                id=next_id(),
                company=exp["company"],
                position=exp["position"],
                location=exp.get("location"),
                start_date=exp.get("startDate"),
                end_date=exp.get("endDate"),
                current=bool(exp.get("current") or False),
                description=exp.get("description"),
            )
            for exp in _items(structured, "experience")
        ],
        education=[
            Education(
                id=next_id(),
                institution=edu["institution"],
                degree=edu["degree"],
                field=edu.get("field"),
                start_date=edu.get("startDate"),
                end_date=edu.get("endDate"),
                description=edu.get("description"),
            )
            for edu in _items(structured, "education")
        ],
        skills=[
            Skill(id=next_id(), name=skill["name"], level=SkillLevel(skill["level"]))
            for skill in _items(structured, "skills")
        ],
        languages=[
            Language(id=next_id(), name=lang["name"], level=LanguageLevel(lang["level"]))
            for lang in _items(structured, "languages")
        ],
        projects=[
            Project(
                id=next_id(),
                name=proj["name"],
                description=proj.get("description"),
                url=proj.get("url"),
                technologies=list(proj.get("technologies") or []),
            )
            for proj in _items(structured, "projects")
        ],
        certifications=[
            Certification(
                id=next_id(),
                name=cert["name"],
                issuer=cert["issuer"],
                date=cert.get("date"),
                url=cert.get("url"),
            )
            for cert in _items(structured, "certifications")
        ],
    )

    LOG.debug(
        "Canonical draft: %d experience, %d education, %d skills, %d languages, %d projects, %d certifications",
        len(draft.experience),
        len(draft.education),
        len(draft.skills),
        len(draft.languages),
        len(draft.projects),
        len(draft.certifications),
    )
    return draft


__all__ = ["canonicalize", "new_entity_id", "IdFactory"]
