"""
Live CV document and the reference apply target.

Applying an imported draft is a full replacement of every entity section;
nothing from the previous content is merged in. Presentation settings
(template, section order) are not part of the draft and are left alone.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .logging_utils import LOG
from .models import (
    CanonicalDraft,
    Certification,
    Education,
    Experience,
    Language,
    PersonalInfo,
    Project,
    Skill,
)

DEFAULT_SECTION_ORDER = (
    "experience",
    "education",
    "skills",
    "languages",
    "projects",
    "certifications",
)


@dataclass
class CVDocument:
    """
    The user's editable CV.

    used_extraction_import is set once any import has been applied and is
    never cleared by later edits; export permission checks read it.
    """
    personal_info: Optional[PersonalInfo] = None
    experience: List[Experience] = field(default_factory=list)
    education: List[Education] = field(default_factory=list)
    skills: List[Skill] = field(default_factory=list)
    languages: List[Language] = field(default_factory=list)
    projects: List[Project] = field(default_factory=list)
    certifications: List[Certification] = field(default_factory=list)
    template: str = "modern"
    section_order: List[str] = field(default_factory=lambda: list(DEFAULT_SECTION_ORDER))
    used_extraction_import: bool = False

    def replace_with(self, draft: CanonicalDraft) -> None:
        """Overwrite every entity section with the draft's content."""
        self.personal_info = draft.personal_info
        self.experience = list(draft.experience)
        self.education = list(draft.education)
        self.skills = list(draft.skills)
        self.languages = list(draft.languages)
        self.projects = list(draft.projects)
        self.certifications = list(draft.certifications)
        if draft.produced_by_extraction:
            self.used_extraction_import = True
        LOG.info("Document replaced with imported draft (%d entities)", len(draft.entity_ids()))

    @property
    def free_export_allowed(self) -> bool:
        return not self.used_extraction_import

    def as_dict(self) -> Dict[str, Any]:
        return {
            "personalInfo": self.personal_info.as_dict() if self.personal_info else {},
            "experience": [e.as_dict() for e in self.experience],
            "education": [e.as_dict() for e in self.education],
            "skills": [s.as_dict() for s in self.skills],
            "languages": [lang.as_dict() for lang in self.languages],
            "projects": [p.as_dict() for p in self.projects],
            "certifications": [c.as_dict() for c in self.certifications],
            "template": self.template,
            "sectionOrder": list(self.section_order),
            "usedExtractionImport": self.used_extraction_import,
        }


__all__ = ["CVDocument"]
