"""indexrag: document processing and retrieval-augmented Q&A core."""

__version__ = "0.1.0"
