"""Defensive loading of call export XML documents."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from xml.etree.ElementTree import Element, ParseError

from defusedxml import DefusedXmlException
from defusedxml.ElementTree import fromstring

from cep.utils.logging import get_logger


logger = get_logger(__name__)

# UTF-16 marks are checked before the longer UTF-8 mark.
BYTE_ORDER_MARKS: tuple[tuple[bytes, str], ...] = (
    (b"\xfe\xff", "utf-16-be"),
    (b"\xff\xfe", "utf-16-le"),
    (b"\xef\xbb\xbf", "utf-8"),
)


class DocumentLoadError(Exception):
    """Raised when a document cannot be read or structurally parsed."""

    def __init__(self, message: str, errors: Optional[list[str]] = None) -> None:
        self.errors = errors or [message]
        super().__init__(f"{message}: {'; '.join(self.errors)}" if errors else message)


@dataclass(frozen=True)
class ParsedDocument:
    """A parsed export document."""

    root: Element
    encoding: Optional[str] = None
    source: Optional[str] = None


def strip_bom(content: bytes) -> tuple[bytes, Optional[str]]:
    """Remove a leading byte-order mark, returning the encoding it implies."""
    for mark, encoding in BYTE_ORDER_MARKS:
        if content.startswith(mark):
            logger.debug("loader.bom_stripped encoding=%s", encoding)
            return content[len(mark):], encoding
    return content, None


def parse_document(content: bytes, source: Optional[str] = None) -> ParsedDocument:
    """Parse raw export bytes with entity expansion and external access refused."""
    body, encoding = strip_bom(content)

    data: bytes | str = body
    if encoding is not None:
        # Decoded text overrides whatever the XML declaration claims.
        try:
            data = body.decode(encoding)
        except UnicodeDecodeError as exc:
            raise DocumentLoadError("Undecodable document", [str(exc)]) from exc

    try:
        root = fromstring(data, forbid_dtd=False, forbid_entities=True, forbid_external=True)
    except DefusedXmlException as exc:
        raise DocumentLoadError("Forbidden XML construct", [str(exc)]) from exc
    except ParseError as exc:
        raise DocumentLoadError("XML parsing errors", _parse_messages(exc)) from exc

    return ParsedDocument(root=root, encoding=encoding, source=source)


def load_document(path: Path) -> ParsedDocument:
    """Read and parse an export file."""
    try:
        content = path.read_bytes()
    except OSError as exc:
        raise DocumentLoadError(f"Failed to read {path.name}", [str(exc)]) from exc
    return parse_document(content, source=path.name)


def _parse_messages(exc: ParseError) -> list[str]:
    messages = [str(exc)]
    line, column = getattr(exc, "position", (None, None))
    if line is not None:
        messages.append(f"line {line}, column {column}")
    return messages
