"""
Plain-text extraction for stored document files (PDF, DOCX, TXT).

The assistant only needs a flat block of text to put in front of the
model, so unlike a full parser this keeps no section structure: pages /
paragraphs / table rows are joined, whitespace is collapsed, and the
result is capped at MAX_EXTRACTED_TEXT_LENGTH characters.
"""
from __future__ import annotations

import io
import logging
from typing import List, Optional

import fitz  # PyMuPDF
from docx import Document as DocxDocument

from app.config import settings
from app.services.exceptions import TextExtractionError, UnsupportedFileTypeError
from app.services.storage import ObjectStorageService
from app.utils.helpers import collapse_whitespace

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "...[nội dung bị cắt]"


class TextExtractionService:
    """Fetches a file from object storage and returns its text."""

    SUPPORTED_EXTENSIONS = (".pdf", ".docx", ".txt")

    def __init__(
        self,
        storage: ObjectStorageService,
        max_length: Optional[int] = None,
    ) -> None:
        self.storage = storage
        self.max_length = max_length or settings.MAX_EXTRACTED_TEXT_LENGTH

    def is_supported(self, file_key: str) -> bool:
        return (file_key or "").lower().endswith(self.SUPPORTED_EXTENSIONS)

    async def extract_text(self, file_key: str) -> str:
        """
        Download *file_key* and return its text, collapsed and truncated.

        Raises:
            UnsupportedFileTypeError: extension not in SUPPORTED_EXTENSIONS
                (raised before anything is downloaded).
            StorageError: the file could not be fetched.
            TextExtractionError: the bytes could not be decoded.
        """
        if not self.is_supported(file_key):
            raise UnsupportedFileTypeError(f"Unsupported file type: {file_key!r}")

        data = await self.storage.get_file_bytes(file_key)
        ext = file_key.lower().rsplit(".", 1)[-1]

        if ext == "pdf":
            raw = self._pdf_text(data)
        elif ext == "docx":
            raw = self._docx_text(data)
        else:
            raw = data.decode("utf-8-sig", errors="replace")

        text = collapse_whitespace(raw)
        if len(text) > self.max_length:
            logger.info(
                "extract_text(%s): truncated %d → %d chars",
                file_key,
                len(text),
                self.max_length,
            )
            text = text[: self.max_length] + TRUNCATION_MARKER
        return text

    # ------------------------------------------------------------------
    # Format decoders
    # ------------------------------------------------------------------

    @staticmethod
    def _pdf_text(data: bytes) -> str:
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as exc:
            raise TextExtractionError(f"Cannot open PDF file: {exc}") from exc

        try:
            if doc.needs_pass:
                raise TextExtractionError("PDF is password-protected.")
            return "\n".join(page.get_text() for page in doc)
        finally:
            doc.close()

    @staticmethod
    def _docx_text(data: bytes) -> str:
        try:
            doc = DocxDocument(io.BytesIO(data))
        except Exception as exc:
            raise TextExtractionError(f"Cannot open DOCX file: {exc}") from exc

        parts: List[str] = [p.text for p in doc.paragraphs if p.text.strip()]
        for table in doc.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if cells:
                    parts.append(" | ".join(cells))
        return "\n".join(parts)
