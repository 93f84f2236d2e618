"""
geotax_ingestion -- Batch import of order files.

Streams rows from a source file, validates them, and runs them through the
jurisdiction resolver and tax composer in bounded-size, atomically
committed chunks.

Architecture:
    geotax_ingestion/ is the outermost package. Nothing in kernel/,
    engines/, or services/ imports from ingestion.
"""
