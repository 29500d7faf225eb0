"""Shared utilities: error hierarchy, structured logging, concurrency."""
