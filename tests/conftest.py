import copy
import io
import itertools
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional
from xml.sax.saxutils import escape
from zipfile import ZIP_DEFLATED, ZipFile

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from cvimport.extractors import PdfDecoder, PdfTextExtractor, get_extractor
from cvimport.services import ExtractionResponse, ExtractionService
from cvimport.shared import SourceFormat


W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"

CONTENT_TYPES_XML = """<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types">
  <Default Extension="xml" ContentType="application/xml"/>
  <Override PartName="/word/document.xml"
    ContentType="application/vnd.openxmlformats-officedocument.wordprocessingml.document.main+xml"/>
</Types>"""


# -------------------------
# DOCX builders
# -------------------------


def p_xml(text: str) -> str:
    """One <w:p> with a single run."""
    return f'<w:p><w:r><w:t xml:space="preserve">{escape(text)}</w:t></w:r></w:p>'


def document_xml(body: str) -> str:
    return f"""<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<w:document xmlns:w="{W_NS}">
  <w:body>
    {body}
  </w:body>
</w:document>"""


def make_docx(paragraphs: Optional[List[str]] = None, body_xml: Optional[str] = None) -> bytes:
    """
    Build DOCX bytes in memory.

    paragraphs: plain strings, one paragraph each
    body_xml: raw body content (overrides paragraphs)
    """
    body = body_xml if body_xml is not None else "\n".join(p_xml(t) for t in (paragraphs or []))
    buf = io.BytesIO()
    with ZipFile(buf, "w") as z:
        z.writestr("[Content_Types].xml", CONTENT_TYPES_XML)
        z.writestr("word/document.xml", document_xml(body))
    return buf.getvalue()


def make_docx_with_broken_deflate(paragraphs: List[str]) -> bytes:
    """
    Build DOCX bytes whose ZIP structure is intact but whose deflated
    word/document.xml stream starts with an invalid block header.
    """
    buf = io.BytesIO()
    with ZipFile(buf, "w", ZIP_DEFLATED) as z:
        z.writestr("word/document.xml", document_xml("\n".join(p_xml(t) for t in paragraphs)))
    data = bytearray(buf.getvalue())
    # First member sits at offset 0: 30-byte local header, then name and extra field
    name_len = int.from_bytes(data[26:28], "little")
    extra_len = int.from_bytes(data[28:30], "little")
    data[30 + name_len + extra_len] = 0xFF  # BFINAL=1, BTYPE=11 (reserved)
    return bytes(data)


# -------------------------
# PDF builder
# -------------------------


def _pdf_string(text: str) -> bytes:
    raw = text.encode("cp1252")
    return raw.replace(b"\\", b"\\\\").replace(b"(", b"\\(").replace(b")", b"\\)")


def make_pdf(pages: List[str]) -> bytes:
    """
    Build a minimal PDF with one Helvetica text page per entry.

    Lines of a page are separated by "\\n"; an empty string gives a page
    without any text.
    """
    objects: List[bytes] = []
    page_ids = [4 + 2 * i for i in range(len(pages))]
    kids = " ".join(f"{pid} 0 R" for pid in page_ids)

    objects.append(b"<< /Type /Catalog /Pages 2 0 R >>")
    objects.append(f"<< /Type /Pages /Kids [{kids}] /Count {len(pages)} >>".encode())
    objects.append(b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica /Encoding /WinAnsiEncoding >>")

    for pid, text in zip(page_ids, pages):
        objects.append(
            (
                "<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
                f"/Resources << /Font << /F1 3 0 R >> >> /Contents {pid + 1} 0 R >>"
            ).encode()
        )
        stream = b""
        if text:
            stream = b"BT /F1 12 Tf 72 720 Td 14 TL"
            for line in text.split("\n"):
                stream += b" (" + _pdf_string(line) + b") Tj T*"
            stream += b" ET"
        objects.append(b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream")

    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += f"{number} 0 obj\n".encode() + body + b"\nendobj\n"

    xref_at = len(out)
    out += f"xref\n0 {len(objects) + 1}\n".encode()
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += f"{offset:010d} 00000 n \n".encode()
    out += f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\nstartxref\n{xref_at}\n%%EOF\n".encode()
    return bytes(out)


# -------------------------
# Fakes
# -------------------------


class FakePdfDecoder(PdfDecoder):
    """Decoder returning canned page texts; counts page reads."""

    def __init__(self, pages: List[str]):
        self.pages = list(pages)
        self.reads = 0

    def extract_pages(self, data: bytes):
        decoder = self

        class _Pages(list):
            def __getitem__(self, index):
                decoder.reads += 1
                return list.__getitem__(self, index)

        return _Pages(self.pages)


class ScriptedService(ExtractionService):
    """
    Extraction service that replays scripted results in order.

    Items are entity dicts (returned as success), ExtractionResponse
    objects, or exceptions to raise. The last item repeats.
    """

    def __init__(self, script: List[Any]):
        self._script = list(script)
        self.calls = 0
        self.requests = []

    def name(self) -> str:
        return "scripted"

    async def extract(self, request):
        self.calls += 1
        self.requests.append(request)
        item = self._script.pop(0) if len(self._script) > 1 else self._script[0]
        if isinstance(item, Exception):
            raise item
        if isinstance(item, ExtractionResponse):
            return item
        return ExtractionResponse.success(copy.deepcopy(item))


class CountingExtractorFactory:
    """Extractor factory that counts lookups and can fake PDF decoding."""

    def __init__(self, pdf_pages: Optional[List[str]] = None):
        self.calls = 0
        self.decoder = FakePdfDecoder(pdf_pages) if pdf_pages is not None else None

    def __call__(self, source_format: SourceFormat):
        self.calls += 1
        if source_format is SourceFormat.PDF and self.decoder is not None:
            return PdfTextExtractor(decoder_factory=lambda: self.decoder)
        return get_extractor(source_format)


# -------------------------
# Data
# -------------------------

CV_LINES = [
    "Jean Dupont, Développeur",
    "jean.dupont@example.com | +33 6 12 34 56 78",
    "Expérience",
    "Acme Corp - Développeur backend (2020-01 - 2023-06)",
    "Conception d'API REST en Python et maintenance de la plateforme de paiement.",
    "Formation",
    "Université de Lyon - Master Informatique",
]


def valid_entities() -> Dict[str, Any]:
    return {
        "personalInfo": {
            "fullName": "Jean Dupont",
            "jobTitle": "Développeur",
            "email": "jean.dupont@example.com",
        },
        "experience": [
            {
                "company": "Acme Corp",
                "position": "Développeur backend",
                "startDate": "2020-01",
                "endDate": "2023-06",
            }
        ],
        "education": [
            {"institution": "Université de Lyon", "degree": "Master", "field": "Informatique"}
        ],
        "skills": [{"name": "Python", "level": "expert"}],
        "languages": [{"name": "Anglais", "level": "fluent"}],
        "projects": [{"name": "Paiements", "technologies": None}],
        "certifications": [],
    }


@pytest.fixture
def entities() -> Dict[str, Any]:
    return valid_entities()


@pytest.fixture
def cv_docx() -> bytes:
    return make_docx(CV_LINES)


@pytest.fixture
def counter_ids():
    counter = itertools.count(1)
    return lambda: f"id-{next(counter)}"
