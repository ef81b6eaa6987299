import io
import logging
import re
from pathlib import PurePath

from pdfminer.high_level import extract_text as pdf_extract
from docx import Document

logging.getLogger("pdfminer").setLevel(logging.ERROR)

PDF_MAGIC = b"%PDF"
DOCX_MAGIC = b"PK\x03\x04"


def read_txt(content: bytes) -> str:
    return content.decode("utf-8", errors="ignore")


def read_docx(content: bytes) -> str:
    doc = Document(io.BytesIO(content))
    return "\n".join([p.text for p in doc.paragraphs])


def read_pdf(content: bytes) -> str:
    try:
        return pdf_extract(io.BytesIO(content))
    except Exception:
        # fallback to unstructured
        from unstructured.partition.auto import partition
        elems = partition(file=io.BytesIO(content))
        return "\n".join([e.text for e in elems if hasattr(e, "text") and e.text])


def clean_text(x: str) -> str:
    x = re.sub(r'\s+', ' ', x).strip()
    return x


def extract_document_text(content: bytes, label: str = "") -> str:
    """Plain text of an uploaded document, dispatched on extension then on magic bytes."""
    ext = PurePath(label or "").suffix.lower()
    if ext == ".pdf" or (not ext and content.startswith(PDF_MAGIC)):
        text = read_pdf(content)
    elif ext == ".docx" or (not ext and content.startswith(DOCX_MAGIC)):
        text = read_docx(content)
    else:
        text = read_txt(content)
    return clean_text(text or "")
