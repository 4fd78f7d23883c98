"""
Base document loader interface.

Loaders only turn a file into plain text; chunking happens downstream so every
format shares one boundary strategy.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
import hashlib


@dataclass(frozen=True)
class LoadedDocument:
    """Plain text extracted from one corpus file."""

    source_name: str
    text: str
    doc_type: str
    path: str

    @property
    def is_empty(self) -> bool:
        return not self.text.strip()

    @property
    def hash(self) -> str:
        return BaseDocLoader.compute_hash(self.text)


class BaseDocLoader(ABC):
    """Abstract base for document loaders."""

    doc_type = "text"

    @staticmethod
    def compute_hash(content: str) -> str:
        """
        Compute SHA256 hash of document content.

        Args:
            content: Document text

        Returns:
            Hex-encoded SHA256 hash
        """
        return hashlib.sha256(content.encode('utf-8')).hexdigest()

    def load(self, path: str) -> LoadedDocument:
        """
        Load a document as plain text.

        Args:
            path: Path to document

        Returns:
            LoadedDocument named after the file

        Raises:
            FileNotFoundError: If file not found
            ValueError: If the file cannot be read
        """
        file_path = Path(path)

        if not file_path.exists():
            raise FileNotFoundError(f"File not found: {path}")

        return LoadedDocument(
            source_name=file_path.name,
            text=self.extract_text(file_path),
            doc_type=self.doc_type,
            path=str(file_path),
        )

    @abstractmethod
    def extract_text(self, file_path: Path) -> str:
        pass
