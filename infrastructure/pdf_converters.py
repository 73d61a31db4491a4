# infrastructure/pdf_converters.py
"""Document-to-text conversion for text-only LLM prompts."""
import base64
import binascii
import logging
from typing import List

import fitz  # PyMuPDF

from config import settings
from core.domain import UploadedFile
from core.exceptions import ExtractionFailure
from core.interfaces import IDocumentTextExtractor

logger = logging.getLogger(settings.LOGGER_NAME)


class PyMuPDFTextExtractor(IDocumentTextExtractor):
    """
    Text layer extraction with PyMuPDF (no OCR).

    PDFs are read page by page with a page marker so the model can cite
    locations; text and HTML documents are decoded as UTF-8.
    """

    def extract_text(self, file: UploadedFile) -> str:
        try:
            content = base64.b64decode(file.data, validate=False)
        except (binascii.Error, ValueError) as e:
            raise ExtractionFailure(f"Document '{file.name}' is not valid base64: {e}")

        if file.mime_type == "application/pdf":
            return self._pdf_text(content, file.name)
        return content.decode("utf-8", errors="replace")

    def _pdf_text(self, content: bytes, name: str) -> str:
        pages: List[str] = []
        try:
            with fitz.open(stream=content, filetype="pdf") as doc:
                for page_num in range(doc.page_count):
                    page = doc.load_page(page_num)
                    pages.append(f"--- Page {page_num + 1} ---\n{page.get_text()}")
        except (RuntimeError, ValueError) as e:
            logger.error(f"PDF text extraction failed for '{name}': {e}")
            raise ExtractionFailure(f"Failed to extract text from PDF '{name}'")

        text = "\n\n".join(pages)
        if not text.strip():
            raise ExtractionFailure(f"No text layer found in '{name}'")
        logger.info(f"Extracted {len(pages)} pages of text from '{name}'")
        return text
