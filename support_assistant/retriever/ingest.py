"""
Batch ingestion: corpus folder -> chunks -> embeddings -> vector store.

One bad file never aborts the run; failures are logged and reported.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional
import logging
import time

from support_assistant.loader import DocumentLoader, LoadedDocument
from support_assistant.retriever.chunker import TextChunker
from support_assistant.retriever.embedder import EmbeddingManager
from support_assistant.retriever.vector_store import VectorStore

logger = logging.getLogger(__name__)


@dataclass
class IngestReport:
    files: List[str] = field(default_factory=list)
    chunks: int = 0
    skipped: List[str] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return not self.failures


class DocumentIngestor:
    """Loads, chunks, embeds and stores every supported file in a folder."""

    def __init__(self, embedder: EmbeddingManager, vector_store: VectorStore,
                 chunker: Optional[TextChunker] = None,
                 loader: Optional[DocumentLoader] = None,
                 audit=None):
        self.embedder = embedder
        self.vector_store = vector_store
        self.chunker = chunker or TextChunker()
        self.loader = loader or DocumentLoader()
        self.audit = audit

    def process_directory(self, dir_path: str) -> IngestReport:
        """
        Ingest all supported files directly inside dir_path.

        A missing folder is created and yields an empty report.
        """
        start = time.time()
        report = IngestReport()
        folder = Path(dir_path)

        if not folder.exists():
            folder.mkdir(parents=True, exist_ok=True)
            logger.info("Created documents folder at %s", folder)
            return report

        files = self.loader.list_directory(str(folder))
        logger.info("Found %s supported file(s) to process", len(files))

        for file in files:
            try:
                count = self.process_document(self.loader.load(str(file)))
            except Exception as e:
                logger.error("Error processing %s: %s", file.name, e)
                report.failures[file.name] = str(e)
                if self.audit:
                    self.audit.log_error('ingestion_failed', str(e), {'source_name': file.name})
                continue

            if count == 0:
                report.skipped.append(file.name)
            else:
                report.files.append(file.name)
                report.chunks += count

        report.elapsed_ms = (time.time() - start) * 1000
        return report

    def process_document(self, document: LoadedDocument) -> int:
        """Chunk, embed and store one document; returns chunks stored."""
        if document.is_empty:
            logger.warning("No text content found in %s", document.source_name)
            return 0

        chunks = self.chunker.chunk_text(document.text, document.source_name)
        vectors = self.embedder.embed_texts([c.text for c in chunks])

        for chunk, vector in zip(chunks, vectors):
            self.vector_store.store_document(chunk, vector)

        logger.info("Processed %s with %s chunk(s)", document.source_name, len(chunks))
        if self.audit:
            self.audit.log_document_ingestion(
                source_name=document.source_name,
                doc_type=document.doc_type,
                num_chunks=len(chunks),
                hash=document.hash,
            )
        return len(chunks)
