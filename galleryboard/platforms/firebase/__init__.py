"""Firebase platform adapters."""

from __future__ import annotations

from .api import FirebaseApiError
from .credentials import AuthError, FirebaseAuthSession, FirebaseSession
from .firestore import FirestoreDocumentStore
from .storage import FirebaseStorageBucket

__all__ = [
    "AuthError",
    "FirebaseApiError",
    "FirebaseAuthSession",
    "FirebaseSession",
    "FirebaseStorageBucket",
    "FirestoreDocumentStore",
]
