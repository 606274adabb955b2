"""
Deterministic, offline extraction service.

A rule-based fallback for when no model is reachable. It only fills a
field when the text contains literal evidence for it (an e-mail address,
a phone number, a "Skills" section with explicit levels, ...) and leaves
everything else out; work history and education are not attempted, since
splitting them reliably needs a language model.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..logging_utils import LOG
from ..shared import clean_text
from .base import ExtractionRequest, ExtractionResponse, ExtractionService

EMAIL_RE = re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)+")
PHONE_RE = re.compile(r"(?:\+\d|\(\d|(?<!\w)0\d)[\d\s().-]{6,}\d")
PHONE_LABEL_RE = re.compile(r"(?:t[eé]l|phone|mobile|portable)\.?\s*:?\s*(\+?\d[\d\s().-]{6,}\d)", re.IGNORECASE)
LINKEDIN_RE = re.compile(r"(?:https?://)?(?:[\w-]+\.)?linkedin\.com/[^\s,;|]+", re.IGNORECASE)
URL_RE = re.compile(r"(?:https?://|www\.)[^\s,;|]+", re.IGNORECASE)

SECTION_HEADINGS: Dict[str, Tuple[str, ...]] = {
    "summary": ("summary", "profile", "profil", "about me", "à propos", "a propos", "résumé", "objective"),
    "skills": ("skills", "technical skills", "compétences", "competences", "compétences techniques"),
    "languages": ("languages", "langues", "spoken languages"),
    "experience": ("experience", "work experience", "professional experience", "expérience", "expériences",
                   "expérience professionnelle", "expériences professionnelles", "employment"),
    "education": ("education", "formation", "formations", "études", "academic background"),
    "projects": ("projects", "projets"),
    "certifications": ("certifications", "certificates", "certificats"),
    "interests": ("interests", "hobbies", "centres d'intérêt", "loisirs"),
}

SKILL_LEVELS: Sequence[Tuple[str, str]] = (
    ("expert", "expert"),
    ("advanced", "advanced"),
    ("avancé", "advanced"),
    ("confirmé", "advanced"),
    ("intermediate", "intermediate"),
    ("intermédiaire", "intermediate"),
    ("beginner", "beginner"),
    ("débutant", "beginner"),
    ("notions", "beginner"),
)

LANGUAGE_LEVELS: Sequence[Tuple[str, str]] = (
    ("langue maternelle", "native"),
    ("mother tongue", "native"),
    ("maternelle", "native"),
    ("native", "native"),
    ("natif", "native"),
    ("bilingual", "fluent"),
    ("bilingue", "fluent"),
    ("fluent", "fluent"),
    ("courant", "fluent"),
    ("c2", "fluent"),
    ("professional", "professional"),
    ("professionnel", "professional"),
    ("c1", "professional"),
    ("b2", "professional"),
    ("conversational", "conversational"),
    ("intermediate", "conversational"),
    ("intermédiaire", "conversational"),
    ("b1", "conversational"),
    ("basic", "basic"),
    ("elementary", "basic"),
    ("notions", "basic"),
    ("scolaire", "basic"),
    ("débutant", "basic"),
    ("a2", "basic"),
    ("a1", "basic"),
)

_ITEM_SPLIT_RE = re.compile(r"[,;•·\n]")
_LEVEL_SEPARATOR_RE = re.compile(r"\s*[:(|]\s*|\s+[-–]\s+")
_NAME_TITLE_SPLIT_RE = re.compile(r"\s*[,|–]\s*|\s+-\s+")


def _heading_key(line: str) -> Optional[str]:
    normalized = line.strip().rstrip(":").strip().lower()
    for key, titles in SECTION_HEADINGS.items():
        if normalized in titles:
            return key
    return None


def split_sections(lines: List[str]) -> Dict[str, List[str]]:
    """Group lines under the last recognised heading; text before any heading is the header."""
    sections: Dict[str, List[str]] = {"header": []}
    current = "header"
    for line in lines:
        key = _heading_key(line)
        if key is not None:
            current = key
            sections.setdefault(current, [])
            continue
        sections[current].append(line)
    return sections


def _match_level(text: str, table: Sequence[Tuple[str, str]]) -> Optional[str]:
    for word, level in table:
        if re.search(rf"(?<!\w){re.escape(word)}(?!\w)", text, re.IGNORECASE):
            return level
    return None


def split_level(item: str, table: Sequence[Tuple[str, str]]) -> Optional[Tuple[str, str]]:
    """
    Split "Python (expert)" / "English: fluent" / "Anglais courant" into (name, level).

    Returns None when the item states no level.
    """
    parts = _LEVEL_SEPARATOR_RE.split(item.strip(), maxsplit=1)
    name = parts[0].strip()
    rest = parts[1] if len(parts) > 1 else ""
    level = _match_level(rest, table) if rest else None

    if level is None and not rest:
        words = name.split()
        for n in (2, 1):
            if len(words) > n:
                tail = " ".join(words[-n:])
                found = _match_level(tail, table)
                if found and tail.lower() in {w for w, _ in table}:
                    name, level = " ".join(words[:-n]), found
                    break

    if level is None or not name:
        return None
    return name.strip(), level


def _items(lines: List[str]) -> List[str]:
    out: List[str] = []
    for chunk in _ITEM_SPLIT_RE.split("\n".join(lines)):
        item = clean_text(chunk)
        if item:
            out.append(item)
    return out


def _partition(line: str) -> Tuple[str, str, str]:
    parts = _NAME_TITLE_SPLIT_RE.split(line, maxsplit=1)
    if len(parts) == 1:
        return line, "", ""
    return parts[0], ",", parts[1]


def _looks_like_name(line: str) -> bool:
    if EMAIL_RE.search(line) or URL_RE.search(line) or LINKEDIN_RE.search(line):
        return False
    if sum(ch.isdigit() for ch in line) > 0:
        return False
    words = line.split()
    if not 1 < len(words) <= 5 or not all(w[0].isalpha() for w in words):
        return False
    # Particles ("de", "van") may be lowercase; first and last names are not.
    return words[0][0].isupper() and words[-1][0].isupper()


class RuleBasedExtractionService(ExtractionService):
    """
    Deterministic offline extraction from literal evidence in the text.
    """

    def __init__(self, **kwargs):
        pass

    def name(self) -> str:
        return "rule-based"

    async def extract(self, request: ExtractionRequest) -> ExtractionResponse:
        entities = self.extract_entities(request.text)
        LOG.info(
            "Rule-based extraction: %d skill(s), %d language(s)",
            len(entities["skills"]),
            len(entities["languages"]),
        )
        return ExtractionResponse.success(entities)

    def extract_entities(self, text: str) -> Dict[str, Any]:
        lines = [clean_text(line) for line in text.splitlines()]
        lines = [line for line in lines if line]
        sections = split_sections(lines)

        return {
            "personalInfo": self._personal_info(text, sections),
            "experience": [],
            "education": [],
            "skills": self._levelled(sections.get("skills", []), SKILL_LEVELS),
            "languages": self._levelled(sections.get("languages", []), LANGUAGE_LEVELS),
            "projects": [],
            "certifications": [],
        }

    def _personal_info(self, text: str, sections: Dict[str, List[str]]) -> Dict[str, Any]:
        info: Dict[str, Any] = {}
        header = sections.get("header", [])

        for idx, line in enumerate(header):
            # "Jean Dupont, Développeur" carries name and title on one line.
            name, _, title = (p.strip() for p in _partition(line))
            if not _looks_like_name(name):
                continue
            info["fullName"] = name
            if not title and idx + 1 < len(header):
                title = header[idx + 1]
            if title and _looks_like_title(title):
                info["jobTitle"] = title
            break

        email = EMAIL_RE.search(text)
        if email:
            info["email"] = email.group(0)

        phone = self._phone(text)
        if phone:
            info["phone"] = phone

        linkedin = LINKEDIN_RE.search(text)
        if linkedin:
            info["linkedin"] = linkedin.group(0)

        for match in URL_RE.finditer(text):
            url = match.group(0)
            if "linkedin.com" not in url.lower():
                info["website"] = url
                break

        summary = sections.get("summary")
        if summary:
            info["summary"] = " ".join(summary)

        return info

    def _phone(self, text: str) -> Optional[str]:
        labelled = PHONE_LABEL_RE.search(text)
        if labelled:
            return labelled.group(1).strip()
        for match in PHONE_RE.finditer(text):
            if sum(ch.isdigit() for ch in match.group(0)) >= 8:
                return match.group(0).strip()
        return None

    def _levelled(self, lines: List[str], table: Sequence[Tuple[str, str]]) -> List[Dict[str, str]]:
        out: List[Dict[str, str]] = []
        for item in _items(lines):
            parsed = split_level(item, table)
            if parsed is None:
                LOG.debug("Skipping %r: no explicit level", item)
                continue
            name, level = parsed
            out.append({"name": name, "level": level})
        return out


def _looks_like_title(line: str) -> bool:
    if _heading_key(line) is not None:
        return False
    if EMAIL_RE.search(line) or URL_RE.search(line) or PHONE_RE.search(line):
        return False
    return 0 < len(line.split()) <= 8


__all__ = ["RuleBasedExtractionService", "split_level", "split_sections"]
