"""Text extraction from downloaded Drive file bytes"""

import io
import logging

import PyPDF2
import docx

logger = logging.getLogger(__name__)


def read_pdf(data: bytes) -> str:
    """Read the text layer of a PDF (empty string for scanned PDFs)"""
    pdf_reader = PyPDF2.PdfReader(io.BytesIO(data))
    pages = []
    for page in pdf_reader.pages:
        page_text = page.extract_text() or ""
        pages.append(page_text)
    text = "\n".join(pages)
    logger.debug(f"Extracted {len(text)} characters from {len(pages)} PDF pages")
    return text


def read_docx(data: bytes) -> str:
    """Read DOCX paragraphs"""
    doc = docx.Document(io.BytesIO(data))
    return "\n".join([para.text for para in doc.paragraphs])


def read_text(data: bytes) -> str:
    """Decode UTF-8, replacing invalid sequences"""
    return data.decode("utf-8", errors="replace")
