"""
Text Acquirer
=============
Obtains best-effort plain text from a source file, dispatching by
extension:
    .pdf   PyMuPDF (fitz), pages in order
    .docx  python-docx, paragraphs and table cells in body order
    .txt   read directly as UTF-8

A decode failure never escapes this module: it is logged and the file
contributes empty text.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterator, Optional, Union

import docx
import fitz  # PyMuPDF
from docx.table import Table
from docx.text.paragraph import Paragraph

from .models import SourceKind

logger = logging.getLogger(__name__)

DOCUMENT_EXTENSIONS = (".pdf", ".docx", ".txt")
TABULAR_EXTENSIONS = (".xlsx", ".xls")

Decoder = Callable[[Path], str]


def classify(path: Union[str, Path]) -> SourceKind:
    """Decide how a file is processed from its extension."""
    suffix = Path(path).suffix.lower()
    if suffix in DOCUMENT_EXTENSIONS:
        return SourceKind.DOCUMENT
    if suffix in TABULAR_EXTENSIONS:
        return SourceKind.TABULAR
    return SourceKind.IGNORED


def decode_pdf(path: Path) -> str:
    with fitz.open(str(path)) as doc:
        return "\n".join(page.get_text("text") for page in doc)


def _iter_docx_lines(document) -> Iterator[str]:
    """Paragraph text in body order, descending into table cells."""
    for child in document.element.body.iterchildren():
        if child.tag.endswith("}p"):
            yield Paragraph(child, document).text
        elif child.tag.endswith("}tbl"):
            for row in Table(child, document).rows:
                for cell in row.cells:
                    for paragraph in cell.paragraphs:
                        yield paragraph.text


def decode_docx(path: Path) -> str:
    document = docx.Document(str(path))
    return "\n".join(_iter_docx_lines(document))


def decode_txt(path: Path) -> str:
    return path.read_text(encoding="utf-8", errors="replace")


DEFAULT_DECODERS: dict[str, Decoder] = {
    ".pdf": decode_pdf,
    ".docx": decode_docx,
    ".txt": decode_txt,
}


class TextAcquirer:
    """
    Per-file text extraction with failure isolation.

    Decoders can be replaced per extension, e.g. to plug in a different
    PDF backend.
    """

    def __init__(self, decoders: Optional[dict[str, Decoder]] = None):
        self.decoders = dict(DEFAULT_DECODERS)
        if decoders:
            self.decoders.update(decoders)
        self.last_error: Optional[str] = None

    def acquire(self, path: Union[str, Path]) -> str:
        """
        Extract text from a document.

        Args:
            path: Path to a .pdf, .docx or .txt file.

        Returns:
            The extracted text, or "" if the file could not be decoded.
        """
        path = Path(path)
        self.last_error = None
        decoder = self.decoders.get(path.suffix.lower())

        if decoder is None:
            self.last_error = f"no decoder for {path.suffix or 'extensionless'} files"
            logger.warning(f"Skipping {path.name}: {self.last_error}")
            return ""

        try:
            text = decoder(path)
        except Exception as e:
            self.last_error = f"{type(e).__name__}: {e}"
            logger.warning(f"Failed reading {path.name}: {self.last_error}")
            return ""

        logger.debug(f"Acquired {len(text)} characters from {path.name}")
        return text or ""
