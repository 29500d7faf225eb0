"""Command-line interface for the knowledge base."""
