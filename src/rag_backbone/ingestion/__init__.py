"""
Ingestion — content extraction, chunking, and embedding into vector memory.

This module is responsible for the ETL-like pipeline that converts raw
documents (plain text, Markdown, PDF, raw strings, bundled knowledge
packs) into embedded chunks stored in a vector memory.  The entry point
is :class:`~rag_backbone.ingestion.service.DocumentIngestionService`.
"""
