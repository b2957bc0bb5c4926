"""Persistent storage for the hub."""

from .document_store import DocumentStore

__all__ = ["DocumentStore"]
