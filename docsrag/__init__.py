"""Retrieval-augmented question answering over GitHub markdown documentation."""

__version__ = "0.1.0"
