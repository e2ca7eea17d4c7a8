"""
File Upload Utility - read CVs and identity documents from uploads.

CV text extraction:
- PDF (.pdf) using PyPDF2
- Word (.docx) using python-docx
- Plain Text (.txt)

Documents for the vision models (CUL, DNI, talent pool CV) are passed
through as raw bytes with their MIME type.

Max file size: 5MB
"""

import io
from typing import Tuple

from fastapi import UploadFile, HTTPException
from PyPDF2 import PdfReader
from docx import Document

from talent_portal.core.exceptions import ValidationException

MAX_FILE_SIZE_MB = 5
MAX_FILE_SIZE_BYTES = MAX_FILE_SIZE_MB * 1024 * 1024
ALLOWED_EXTENSIONS = {'.pdf', '.docx', '.txt'}

DOCUMENT_MIME_TYPES = {
    '.pdf': 'application/pdf',
    '.png': 'image/png',
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.webp': 'image/webp',
}


def get_file_extension(filename: str) -> str:
    """Get lowercase file extension."""
    if '.' not in filename:
        return ''
    return '.' + filename.rsplit('.', 1)[1].lower()


async def _read_limited(file: UploadFile) -> bytes:
    content = await file.read()
    if len(content) > MAX_FILE_SIZE_BYTES:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size: {MAX_FILE_SIZE_MB}MB"
        )
    return content


async def extract_text_from_file(file: UploadFile) -> Tuple[str, str]:
    """
    Extract text from an uploaded CV.

    Returns:
        Tuple of (extracted_text, filename)

    Raises:
        ValidationException on unsupported or unreadable files
    """
    if not file.filename:
        raise ValidationException("No filename provided")

    ext = get_file_extension(file.filename)
    if ext not in ALLOWED_EXTENSIONS:
        raise ValidationException(f"Unsupported file type '{ext}'. Allowed: PDF, DOCX, TXT")

    content = await _read_limited(file)

    if ext == '.pdf':
        text = extract_from_pdf(content)
    elif ext == '.docx':
        text = extract_from_docx(content)
    else:  # .txt
        text = extract_from_txt(content)

    if not text.strip():
        raise ValidationException("Could not extract text from file. File may be empty or corrupted.")

    return text, file.filename


async def read_document(file: UploadFile) -> Tuple[bytes, str, str]:
    """
    Raw bytes of a PDF or image for the vision models.

    Returns:
        Tuple of (content, mime_type, filename)
    """
    if not file.filename:
        raise ValidationException("No filename provided")

    ext = get_file_extension(file.filename)
    mime_type = DOCUMENT_MIME_TYPES.get(ext)
    if not mime_type:
        raise ValidationException(f"Unsupported document type '{ext}'. Allowed: PDF, PNG, JPG, WEBP")

    content = await _read_limited(file)
    if not content:
        raise ValidationException("Empty file")
    return content, mime_type, file.filename


def extract_from_pdf(content: bytes) -> str:
    """Extract text from PDF bytes."""
    try:
        reader = PdfReader(io.BytesIO(content))
        text_parts = []
        for page in reader.pages:
            page_text = page.extract_text()
            if page_text:
                text_parts.append(page_text)
        return '\n'.join(text_parts)
    except Exception as e:
        raise ValidationException(f"Error reading PDF: {e}")


def extract_from_docx(content: bytes) -> str:
    """Extract text from DOCX bytes, paragraphs then tables."""
    try:
        doc = Document(io.BytesIO(content))
        text_parts = [para.text for para in doc.paragraphs if para.text.strip()]

        for table in doc.tables:
            for row in table.rows:
                row_text = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if row_text:
                    text_parts.append(' | '.join(row_text))

        return '\n'.join(text_parts)
    except Exception as e:
        raise ValidationException(f"Error reading DOCX: {e}")


def extract_from_txt(content: bytes) -> str:
    """Extract text from TXT bytes."""
    for encoding in ['utf-8', 'latin-1', 'cp1252']:
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise ValidationException("Could not decode text file")
