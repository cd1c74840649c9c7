"""
Gleaner: continuously learning knowledge service

Ingests content from scheduled sources, stores embeddings and answers
questions with retrieval-augmented generation:
- Sources: API, web pages, PDFs, videos and feeds on per-source schedules
- Storage: in-process vector store with snapshots, or Milvus
- Answers: grounded in stored documents, with doc_id attribution
"""

__version__ = "0.1.0"
