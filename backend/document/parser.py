"""Turn uploaded source documents into note-ready plain text.

Uploads are validated (type, size, emptiness), text is extracted with the
format's parser off the event loop, and the result is normalised into the
blank-line separated paragraphs the generation prompt and
``split_into_blocks`` expect.
"""

import asyncio
import io
import re
from dataclasses import dataclass

import pdfplumber
from docx import Document as DocxDocument

ALLOWED_EXTENSIONS = {".txt", ".md", ".pdf", ".docx"}

_BLANK_RUN_RE = re.compile(r"\n{3,}")
_TRAILING_SPACE_RE = re.compile(r"[ \t]+\n")


class UploadRejectedError(ValueError):
    """The uploaded file cannot be used as a source document."""


@dataclass(frozen=True)
class SourceText:
    filename: str
    extension: str
    text: str
    size: int


async def read_upload(filename: str, content: bytes, max_bytes: int) -> SourceText:
    """Validate an upload and extract its normalised text.

    Raises:
        UploadRejectedError: Unsupported type, too large, empty, or no text
            could be extracted.
    """
    ext = get_extension(filename)
    if ext not in ALLOWED_EXTENSIONS:
        raise UploadRejectedError(
            f"Unsupported file type: {ext or filename}. "
            f"Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
        )
    if len(content) > max_bytes:
        raise UploadRejectedError(
            f"File too large. Maximum size is {max_bytes // (1024 * 1024)}MB."
        )
    if not content:
        raise UploadRejectedError("File is empty.")

    text = await extract_text(filename, content)
    if not text:
        raise UploadRejectedError("Could not extract any text from the uploaded file.")
    return SourceText(filename=filename, extension=ext, text=text, size=len(content))


async def extract_text(filename: str, content: bytes) -> str:
    """Extract and normalise text based on the file extension.

    PDF and DOCX parsing is blocking and runs in the default executor.

    Raises:
        UploadRejectedError: If the file type is not supported.
    """
    ext = get_extension(filename)

    if ext in (".txt", ".md"):
        return normalize_text(_decode(content))

    if ext == ".pdf":
        extractor = _extract_pdf
    elif ext == ".docx":
        extractor = _extract_docx
    else:
        raise UploadRejectedError(
            f"Unsupported file type: {ext or filename}. "
            f"Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
        )

    loop = asyncio.get_running_loop()
    return normalize_text(await loop.run_in_executor(None, extractor, content))


def get_extension(filename: str) -> str:
    """Return the lowercase file extension including the dot."""
    dot = filename.rfind(".")
    if dot == -1:
        return ""
    return filename[dot:].lower()


def normalize_text(text: str) -> str:
    """Unify line endings and collapse blank-line runs to one blank line."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _TRAILING_SPACE_RE.sub("\n", text)
    return _BLANK_RUN_RE.sub("\n\n", text).strip()


def _decode(content: bytes) -> str:
    # utf-8-sig drops a leading BOM; latin-1 accepts any byte sequence
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        return content.decode("latin-1")


def _extract_pdf(content: bytes) -> str:
    pages = []
    with pdfplumber.open(io.BytesIO(content)) as pdf:
        for page in pdf.pages:
            text = page.extract_text()
            if text and text.strip():
                pages.append(text)
    return "\n\n".join(pages)


def _extract_docx(content: bytes) -> str:
    """Paragraphs in order, then each table row as one ``a | b`` line."""
    doc = DocxDocument(io.BytesIO(content))
    parts = [p.text for p in doc.paragraphs if p.text.strip()]
    for table in doc.tables:
        rows = []
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells]
            if any(cells):
                rows.append(" | ".join(cells))
        if rows:
            parts.append("\n".join(rows))
    return "\n\n".join(parts)
