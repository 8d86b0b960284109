import asyncio
import io
import re
from pathlib import Path

import olefile
from docx import Document
from pdfminer.high_level import extract_text as pdf_extract

from resume_pipeline.utils.exceptions import ExtractionError
from resume_pipeline.utils.logging_config import get_logger

logger = get_logger(__name__)

PDF = "application/pdf"
DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
MSWORD = "application/msword"
PLAIN_TEXT = "text/plain"

_HORIZONTAL_WS = re.compile(r"[^\S\n]+")
_NEWLINE_RUNS = re.compile(r"\s*\n\s*")


def read_txt(p: Path) -> str:
    return p.read_bytes().decode("utf-8", errors="ignore")


def read_docx(p: Path) -> str:
    doc = Document(str(p))
    return "\n".join(para.text for para in doc.paragraphs)


def read_pdf(p: Path) -> str:
    try:
        text = pdf_extract(str(p))
    except Exception as e:
        logger.debug(f"pdfminer failed for {p.name}, trying unstructured: {e}")
        text = ""
    if text and text.strip():
        return text

    # unstructured pulls in a large dependency tree, load it only when needed
    from unstructured.partition.auto import partition
    elems = partition(filename=str(p))
    return "\n".join(e.text for e in elems if getattr(e, "text", None))


def read_doc(p: Path) -> str:
    """Printable runs from the WordDocument stream of a legacy .doc file."""
    with olefile.OleFileIO(io.BytesIO(p.read_bytes())) as ole:
        if not ole.exists("WordDocument"):
            raise ValueError("no WordDocument stream")
        data = ole.openstream("WordDocument").read()

    chunks, current = [], bytearray()
    for byte in data:
        if 32 <= byte <= 126 or byte in (9, 10, 13):
            current.append(byte)
            continue
        if len(current) > 3:
            chunks.append(current.decode("ascii", errors="ignore"))
        current = bytearray()
    if len(current) > 3:
        chunks.append(current.decode("ascii", errors="ignore"))
    return "\n".join(chunks)


READERS = {
    PDF: read_pdf,
    DOCX: read_docx,
    MSWORD: read_doc,
    PLAIN_TEXT: read_txt,
}


def normalize_text(x: str) -> str:
    """Collapse horizontal whitespace to one space and newline runs to one newline."""
    x = _HORIZONTAL_WS.sub(" ", x)
    x = _NEWLINE_RUNS.sub("\n", x)
    return x.strip()


def extract_text(path: str, content_type: str) -> str:
    """Read a document by its declared content type and return normalised text."""
    mime = (content_type or "").split(";")[0].strip().lower()
    reader = READERS.get(mime)
    if reader is None:
        raise ExtractionError(f"Unsupported file type: {content_type}", content_type=content_type)

    p = Path(path)
    try:
        raw = reader(p)
    except Exception as e:
        raise ExtractionError(
            f"Failed to extract text from {mime} document: {e}",
            content_type=mime,
            file_name=p.name,
            cause=e,
        ) from e
    return normalize_text(raw or "")


async def extract_text_async(path: str, content_type: str) -> str:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, extract_text, path, content_type)
