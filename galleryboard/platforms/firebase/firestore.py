"""Cloud Firestore access over the REST API."""

from __future__ import annotations

import base64
import secrets
import string
import threading
from datetime import UTC, datetime
from typing import Any, Callable, Mapping

import requests

from galleryboard.platforms.base import (
    SERVER_TIMESTAMP,
    BackendError,
    Document,
    ErrorCallback,
    SnapshotCallback,
)
from galleryboard.utils.logging import get_logger

from .api import FirebaseApiError, json_body, send

LOGGER = get_logger(__name__)

_AUTO_ID_ALPHABET = string.ascii_letters + string.digits
_AUTO_ID_LENGTH = 20


def auto_id() -> str:
    """Random 20-character document id, matching the client SDKs."""
    return "".join(secrets.choice(_AUTO_ID_ALPHABET) for _ in range(_AUTO_ID_LENGTH))


def encode_value(value: Any) -> dict[str, Any]:
    """Encode a Python value as a Firestore REST ``Value``."""
    if value is None:
        return {"nullValue": None}
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, bytes):
        return {"bytesValue": base64.b64encode(value).decode("ascii")}
    if isinstance(value, datetime):
        stamp = value if value.tzinfo else value.replace(tzinfo=UTC)
        return {"timestampValue": stamp.astimezone(UTC).isoformat().replace("+00:00", "Z")}
    if isinstance(value, Mapping):
        return {"mapValue": {"fields": encode_fields(value)}}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [encode_value(item) for item in value]}}
    raise TypeError(f"Unsupported Firestore value: {type(value).__name__}")


def encode_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    return {key: encode_value(value) for key, value in fields.items()}


def parse_timestamp(raw: str) -> datetime:
    # Firestore emits nanosecond precision; datetime keeps microseconds.
    text = raw.rstrip("Z")
    if "." in text:
        head, fraction = text.split(".", 1)
        text = f"{head}.{fraction[:6].ljust(6, '0')}"
    return datetime.fromisoformat(text).replace(tzinfo=UTC)


def decode_value(value: Mapping[str, Any]) -> Any:
    """Decode a Firestore REST ``Value`` into a Python value."""
    if "nullValue" in value:
        return None
    if "booleanValue" in value:
        return bool(value["booleanValue"])
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "stringValue" in value:
        return value["stringValue"]
    if "bytesValue" in value:
        return base64.b64decode(value["bytesValue"])
    if "timestampValue" in value:
        return parse_timestamp(value["timestampValue"])
    if "referenceValue" in value:
        return value["referenceValue"]
    if "mapValue" in value:
        return decode_fields(value["mapValue"].get("fields", {}))
    if "arrayValue" in value:
        return [decode_value(item) for item in value["arrayValue"].get("values", [])]
    raise ValueError(f"Unsupported Firestore value: {sorted(value)}")


def decode_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    return {key: decode_value(value) for key, value in fields.items()}


def decode_document(raw: Mapping[str, Any]) -> Document:
    name = str(raw["name"])
    return Document(id=name.rsplit("/", 1)[-1], data=decode_fields(raw.get("fields", {})))


class FirestoreDocumentStore:
    """Document store backed by Firestore's REST endpoints.

    Standing queries are emulated by polling ``documents:runQuery`` on a
    daemon thread. Local writes are echoed to listeners straight away as
    pending documents whose server-timestamp fields are ``None``. A pending
    document is dropped when a poll returns it, when a poll started after its
    commit comes back without it, when it is deleted, or straight after the
    commit if nothing is listening to its collection.
    """

    _BASE_URL = "https://firestore.googleapis.com/v1"

    def __init__(
        self,
        *,
        project_id: str,
        token_source: Callable[[], str | None],
        database: str = "(default)",
        http: requests.Session | None = None,
        timeout: float = 30.0,
        poll_interval: float = 2.0,
    ) -> None:
        if not project_id:
            raise RuntimeError("Firestore requires a project_id; set firebase.project_id")
        self._database_path = f"projects/{project_id}/databases/{database}"
        self._token_source = token_source
        self._http = http or requests.Session()
        self._timeout = timeout
        self._poll_interval = poll_interval
        self._lock = threading.Lock()
        self._pending: dict[str, dict[str, Document]] = {}
        self._commit_marks: dict[tuple[str, str], int] = {}
        self._commit_seq = 0
        self._listeners: list[_PollingListener] = []

    @property
    def documents_url(self) -> str:
        return f"{self._BASE_URL}/{self._database_path}/documents"

    def document_name(self, collection: str, doc_id: str) -> str:
        return f"{self._database_path}/documents/{collection}/{doc_id}"

    def add(self, collection: str, fields: Mapping[str, Any]) -> str:
        doc_id = auto_id()
        static_fields = {k: v for k, v in fields.items() if v is not SERVER_TIMESTAMP}
        server_fields = [k for k, v in fields.items() if v is SERVER_TIMESTAMP]
        write: dict[str, Any] = {
            "update": {
                "name": self.document_name(collection, doc_id),
                "fields": encode_fields(static_fields),
            },
            "currentDocument": {"exists": False},
        }
        if server_fields:
            write["updateTransforms"] = [
                {"fieldPath": name, "setToServerValue": "REQUEST_TIME"} for name in server_fields
            ]

        local = dict(static_fields)
        local.update({name: None for name in server_fields})
        self._set_pending(collection, Document(id=doc_id, data=local, has_pending_writes=True))
        try:
            send(
                lambda: self._http.post(
                    f"{self.documents_url}:commit",
                    json={"writes": [write]},
                    headers=self._headers(),
                    timeout=self._timeout,
                ),
                "Failed to create document",
            )
        except BackendError:
            self._clear_pending(collection, doc_id)
            raise
        with self._lock:
            self._commit_seq += 1
            self._commit_marks[(collection, doc_id)] = self._commit_seq
            watched = any(item.collection == collection for item in self._listeners)
        if not watched:
            self._clear_pending(collection, doc_id)
        LOGGER.info(
            "Document committed",
            extra={"event": "firestore.add", "collection": collection, "doc_id": doc_id},
        )
        self._wake(collection)
        return doc_id

    def delete(self, collection: str, doc_id: str) -> None:
        send(
            lambda: self._http.delete(
                f"{self.documents_url}/{collection}/{doc_id}",
                headers=self._headers(),
                timeout=self._timeout,
            ),
            "Failed to delete document",
        )
        self._clear_pending(collection, doc_id)
        LOGGER.info(
            "Document deleted",
            extra={"event": "firestore.delete", "collection": collection, "doc_id": doc_id},
        )
        self._wake(collection)

    def run_query(self, collection: str, *, order_by: str, descending: bool) -> list[Document]:
        """Run the ordered collection query once."""
        body = {
            "structuredQuery": {
                "from": [{"collectionId": collection}],
                "orderBy": [
                    {
                        "field": {"fieldPath": order_by},
                        "direction": "DESCENDING" if descending else "ASCENDING",
                    }
                ],
            }
        }
        response = send(
            lambda: self._http.post(
                f"{self.documents_url}:runQuery",
                json=body,
                headers=self._headers(),
                timeout=self._timeout,
            ),
            "Failed to query documents",
        )
        rows = json_body(response, "Failed to parse query response")
        if not isinstance(rows, list):
            raise FirebaseApiError("Unexpected query response", code="invalid-response")
        try:
            return [decode_document(row["document"]) for row in rows if "document" in row]
        except (KeyError, TypeError, ValueError) as exc:
            raise FirebaseApiError(
                "Unexpected query response",
                code="invalid-response",
                details={"reason": f"{type(exc).__name__}: {exc}"},
            ) from exc

    def listen(
        self,
        collection: str,
        *,
        order_by: str,
        descending: bool,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> "_PollingListener":
        listener = _PollingListener(
            self,
            collection,
            order_by=order_by,
            descending=descending,
            on_snapshot=on_snapshot,
            on_error=on_error,
            interval=self._poll_interval,
        )
        with self._lock:
            self._listeners.append(listener)
        listener.start()
        return listener

    def close(self) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener.remove()

    def pending_documents(self, collection: str) -> list[Document]:
        with self._lock:
            return list(self._pending.get(collection, {}).values())

    def commit_sequence(self) -> int:
        with self._lock:
            return self._commit_seq

    def acknowledge(self, collection: str, server_ids: set[str], *, as_of: int) -> None:
        """Drop pending documents answered by a poll that started at ``as_of``."""
        with self._lock:
            pending = self._pending.get(collection, {})
            for doc_id in list(pending):
                mark = self._commit_marks.get((collection, doc_id))
                if doc_id in server_ids or (mark is not None and mark <= as_of):
                    del pending[doc_id]
                    self._commit_marks.pop((collection, doc_id), None)

    def _detach(self, listener: "_PollingListener") -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _set_pending(self, collection: str, document: Document) -> None:
        with self._lock:
            self._pending.setdefault(collection, {})[document.id] = document
        self._refresh_local(collection)

    def _clear_pending(self, collection: str, doc_id: str) -> None:
        with self._lock:
            self._pending.get(collection, {}).pop(doc_id, None)
            self._commit_marks.pop((collection, doc_id), None)
        self._refresh_local(collection)

    def _listeners_for(self, collection: str) -> list["_PollingListener"]:
        with self._lock:
            return [item for item in self._listeners if item.collection == collection]

    def _refresh_local(self, collection: str) -> None:
        for listener in self._listeners_for(collection):
            listener.deliver_local()

    def _wake(self, collection: str) -> None:
        for listener in self._listeners_for(collection):
            listener.wake()

    def _headers(self) -> dict[str, str]:
        token = self._token_source()
        return {"Authorization": f"Bearer {token}"} if token else {}


class _PollingListener:
    """One standing query; removing it stops the polling thread."""

    def __init__(
        self,
        store: FirestoreDocumentStore,
        collection: str,
        *,
        order_by: str,
        descending: bool,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
        interval: float,
    ) -> None:
        self.collection = collection
        self._store = store
        self._order_by = order_by
        self._descending = descending
        self._on_snapshot = on_snapshot
        self._on_error = on_error
        self._interval = interval
        self._stopped = threading.Event()
        self._wake = threading.Event()
        self._deliver_lock = threading.Lock()
        self._server_docs: list[Document] | None = None
        self._signature: tuple[Any, ...] | None = None
        self._thread = threading.Thread(
            target=self._run, name=f"firestore-listen-{collection}", daemon=True
        )

    @property
    def active(self) -> bool:
        return not self._stopped.is_set()

    def start(self) -> None:
        self._thread.start()

    def remove(self) -> None:
        if self._stopped.is_set():
            return
        self._stopped.set()
        self._wake.set()
        self._store._detach(self)

    def wake(self) -> None:
        self._wake.set()

    def deliver_local(self) -> None:
        if self._server_docs is not None:
            self._deliver()

    def _run(self) -> None:
        while not self._stopped.is_set():
            as_of = self._store.commit_sequence()
            try:
                docs = self._store.run_query(
                    self.collection, order_by=self._order_by, descending=self._descending
                )
            except BackendError as exc:
                if not self._stopped.is_set():
                    self.remove()
                    self._on_error(exc)
                return
            self._store.acknowledge(self.collection, {doc.id for doc in docs}, as_of=as_of)
            self._server_docs = docs
            self._deliver()
            self._wake.wait(self._interval)
            self._wake.clear()

    def _deliver(self) -> None:
        with self._deliver_lock:
            if self._stopped.is_set() or self._server_docs is None:
                return
            server_ids = {doc.id for doc in self._server_docs}
            pending = [
                doc
                for doc in self._store.pending_documents(self.collection)
                if doc.id not in server_ids
            ]
            merged = pending + list(self._server_docs)
            signature = tuple(
                (doc.id, doc.has_pending_writes, repr(sorted(doc.data.items()))) for doc in merged
            )
            if signature == self._signature:
                return
            self._signature = signature
            self._on_snapshot(merged)
