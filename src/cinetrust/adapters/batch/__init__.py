"""JSON/JSONL batch ingestion adapter."""

from __future__ import annotations

from .loader import BatchError, LoadedBatch, load_batch, load_batches, parse_batch

__all__ = ["BatchError", "LoadedBatch", "load_batch", "load_batches", "parse_batch"]
