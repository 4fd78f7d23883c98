"""Corpus loading: supported files in a folder -> plain text documents."""

from pathlib import Path
from typing import List
from .base import BaseDocLoader, LoadedDocument
from .pdf import PDFDocLoader
from .text import MarkdownDocLoader, TextDocLoader


LOADER_MAP = {
    '.pdf': PDFDocLoader,
    '.md': MarkdownDocLoader,
    '.txt': TextDocLoader,
}

SUPPORTED_EXTENSIONS = tuple(LOADER_MAP)


class DocumentLoader:
    """Unified document loader with auto-detection."""

    def __init__(self):
        """Initialize loaders."""
        self.loaders = {
            ext: loader_class() for ext, loader_class in LOADER_MAP.items()
        }

    def is_supported(self, path: str) -> bool:
        return Path(path).suffix.lower() in self.loaders

    def load(self, path: str) -> LoadedDocument:
        """
        Load document by auto-detecting format.

        Args:
            path: Path to document file

        Returns:
            Plain text document

        Raises:
            FileNotFoundError: If file not found
            ValueError: If format not supported
        """
        file_path = Path(path)

        if not file_path.exists():
            raise FileNotFoundError(f"File not found: {path}")

        ext = file_path.suffix.lower()

        if ext not in self.loaders:
            raise ValueError(f"Unsupported format: {ext}")

        return self.loaders[ext].load(path)

    def list_directory(self, dir_path: str) -> List[Path]:
        """Supported files directly inside dir_path, sorted by name."""
        return sorted(
            p for p in Path(dir_path).iterdir()
            if p.is_file() and p.suffix.lower() in self.loaders
        )


__all__ = [
    'BaseDocLoader', 'DocumentLoader', 'LoadedDocument', 'LOADER_MAP', 'SUPPORTED_EXTENSIONS',
]
