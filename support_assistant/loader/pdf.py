"""PDF document loader using PyPDF2."""

from pathlib import Path
import logging
import PyPDF2
from .base import BaseDocLoader

logger = logging.getLogger(__name__)


class PDFDocLoader(BaseDocLoader):
    """Extract the text layer of a PDF, page by page."""

    doc_type = "pdf"

    def extract_text(self, file_path: Path) -> str:
        """
        Raises:
            ValueError: If PDF invalid
        """
        pages = []

        try:
            with open(file_path, 'rb') as f:
                pdf_reader = PyPDF2.PdfReader(f)

                for page in pdf_reader.pages:
                    text = page.extract_text() or ''
                    if text.strip():
                        pages.append(text)

        except PyPDF2.errors.PdfReadError as e:
            raise ValueError(f"Invalid PDF: {e}")

        if not pages:
            logger.warning("No text layer found in %s", file_path.name)

        return "\n".join(pages)
