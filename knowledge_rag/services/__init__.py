"""Ingestion, storage and retrieval services."""
