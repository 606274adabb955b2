"""
Low-level DOCX / WordprocessingML helpers.

This module handles direct extraction of text from DOCX bytes:
- opening the package as a ZIP archive
- reading the main document part
- iterating body paragraphs
- converting Word runs into plain text

It contains no CV-specific logic; the pipeline only needs the text.
"""

from __future__ import annotations

import io
import zlib
from typing import Iterator, List
from zipfile import BadZipFile, ZipFile

from lxml import etree

from ..errors import CorruptFile
from ..shared import normalize_text_for_processing

# no_network: never resolve external DTDs/entities from an uploaded file
XML_PARSER = etree.XMLParser(recover=True, huge_tree=True, resolve_entities=False, no_network=True)

W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
DOCX_NS = {"w": W_NS}

DOCUMENT_PART = "word/document.xml"
P_TAG = f"{{{W_NS}}}p"


def read_document_part(data: bytes) -> bytes:
    """
    Return the raw XML of the document body part.

    Raises:
        CorruptFile: If the bytes are not a ZIP archive, the part is missing,
            or its compressed stream cannot be inflated
    """
    try:
        with ZipFile(io.BytesIO(data)) as z:
            return z.read(DOCUMENT_PART)
    except KeyError as e:
        raise CorruptFile(f"unreadable DOCX structure: {DOCUMENT_PART} is missing") from e
    except (BadZipFile, EOFError, OSError, ValueError, zlib.error) as e:
        raise CorruptFile(f"unreadable DOCX structure: {e}") from e
    except (NotImplementedError, RuntimeError) as e:
        # Unsupported compression method or password-protected member
        raise CorruptFile(f"unreadable DOCX structure: {e}") from e


def parse_document_xml(xml_bytes: bytes) -> etree._Element:
    try:
        root = etree.fromstring(xml_bytes, XML_PARSER)
    except etree.XMLSyntaxError as e:
        raise CorruptFile(f"unreadable DOCX structure: {e}") from e
    if root is None:
        raise CorruptFile("unreadable DOCX structure: empty document part")
    return root


def iter_paragraph_texts(root: etree._Element) -> Iterator[str]:
    """
    Yield the text of every paragraph in document order.

    Paragraphs nested in tables are included (flattened); empty paragraphs
    yield an empty string so that blank lines survive.
    """
    body = root.find("w:body", DOCX_NS)
    scope = body if body is not None else root
    for p in scope.iter(P_TAG):
        if _inside_paragraph(p):
            continue  # text box content, already part of its host paragraph
        yield extract_text_from_w_p(p)


def _inside_paragraph(p: etree._Element) -> bool:
    return any(a.tag == P_TAG for a in p.iterancestors())


def extract_text_from_w_p(p: etree._Element) -> str:
    parts: List[str] = []
    for node in p.iter():
        if not isinstance(node.tag, str):
            continue  # comments / processing instructions
        tag = etree.QName(node).localname
        if tag == "t" and node.text:
            parts.append(node.text)
        elif tag in ("noBreakHyphen", "softHyphen"):
            parts.append("-")
        elif tag in ("br", "cr"):
            parts.append("\n")
        elif tag == "tab" and _is_run_tab(node):
            parts.append("\t")
    return normalize_text_for_processing("".join(parts))


def _is_run_tab(node: etree._Element) -> bool:
    # <w:tabs><w:tab .../></w:tabs> in paragraph properties are tab stops, not tabs.
    parent = node.getparent()
    return parent is None or etree.QName(parent).localname != "tabs"
