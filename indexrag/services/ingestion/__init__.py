"""Document ingestion: markup stripping and chunking.

Write-path stages overview:

1. **Strip** (indexrag.utils.text_normalizer.strip_markdown) -- Removes
   markdown syntax so embeddings see prose, not formatting.

2. **Chunk** (chunker.py / TextChunker) -- Splits the plain text into
   ~512-character overlapping windows aligned to sentence boundaries.

Embedding and storage are handled by the processing pipeline
(indexrag.pipeline.orchestrator) through IVectorStoreProvider.
"""

from indexrag.services.ingestion.chunker import TextChunker, split_sentences

__all__ = ["TextChunker", "split_sentences"]
