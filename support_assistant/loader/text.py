"""Markdown and plain text document loader."""

from pathlib import Path
from .base import BaseDocLoader


class TextDocLoader(BaseDocLoader):
    """Load Markdown/TXT documents verbatim."""

    def extract_text(self, file_path: Path) -> str:
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                return f.read()
        except UnicodeDecodeError as e:
            raise ValueError(f"Error reading file: {e}")


class MarkdownDocLoader(TextDocLoader):
    doc_type = "markdown"
