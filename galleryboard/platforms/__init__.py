"""Backend integration package."""

from __future__ import annotations

from .base import (
    SERVER_TIMESTAMP,
    AuthProvider,
    BackendError,
    ConnectivityError,
    Document,
    DocumentStore,
    EditorSurface,
    Identity,
    ListenerRegistration,
    ObjectStorage,
    PermissionDeniedError,
    TransferError,
    UploadedObject,
)

__all__ = [
    "SERVER_TIMESTAMP",
    "AuthProvider",
    "BackendError",
    "ConnectivityError",
    "Document",
    "DocumentStore",
    "EditorSurface",
    "Identity",
    "ListenerRegistration",
    "ObjectStorage",
    "PermissionDeniedError",
    "TransferError",
    "UploadedObject",
]
