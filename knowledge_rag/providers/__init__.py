"""Concrete adapters for the collaborator interfaces."""
