"""Live, ordered view of the posts collection."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, Sequence

from galleryboard.platforms import (
    BackendError,
    Document,
    DocumentStore,
    ListenerRegistration,
    PermissionDeniedError,
)
from galleryboard.services.models import FeedSnapshot, NoticeKind
from galleryboard.utils.logging import get_logger

LOGGER = get_logger(__name__)

ORDER_FIELD = "createdAt"


@dataclass(slots=True, frozen=True)
class FeedFailure:
    """Terminal condition of a subscription."""

    kind: NoticeKind
    error: BackendError


SnapshotHandler = Callable[[FeedSnapshot], None]
FailureHandler = Callable[[FeedFailure], None]


class FeedSubscription:
    """Handle returned by :meth:`FeedSynchronizer.subscribe`.

    Deliveries and ``unsubscribe`` share one lock, so once ``unsubscribe``
    returns no further delivery can start. Calling it from inside a callback
    is allowed.
    """

    def __init__(self, on_snapshot: SnapshotHandler, on_failure: FailureHandler | None) -> None:
        self._on_snapshot = on_snapshot
        self._on_failure = on_failure
        self._lock = threading.RLock()
        self._active = True
        self._registration: ListenerRegistration | None = None
        self.last_snapshot: FeedSnapshot | None = None
        self.failure: FeedFailure | None = None

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        with self._lock:
            if not self._active:
                return
            self._active = False
            registration, self._registration = self._registration, None
        if registration is not None:
            registration.remove()
        LOGGER.debug("Feed subscription released", extra={"event": "feed.unsubscribe"})

    def _attach(self, registration: ListenerRegistration) -> None:
        with self._lock:
            if self._active:
                self._registration = registration
                return
        # Unsubscribed while the listener was being registered.
        registration.remove()

    def _deliver(self, documents: Sequence[Document]) -> None:
        with self._lock:
            if not self._active:
                return
            snapshot = FeedSnapshot.from_documents(documents)
            self.last_snapshot = snapshot
            try:
                self._on_snapshot(snapshot)
            except Exception:
                LOGGER.exception("Feed consumer failed", extra={"event": "feed.consumer_error"})

    def _fail(self, error: BackendError) -> None:
        with self._lock:
            if not self._active:
                return
            kind = (
                NoticeKind.READ_DENIED
                if isinstance(error, PermissionDeniedError)
                else NoticeKind.CONNECTIVITY
            )
            self.failure = FeedFailure(kind=kind, error=error)
            LOGGER.error(
                "Feed channel failed",
                extra={"event": "feed.error", "kind": kind.value, "code": error.code},
            )
            handler = self._on_failure
        self.unsubscribe()
        if handler is not None:
            try:
                handler(self.failure)
            except Exception:
                LOGGER.exception("Feed failure handler failed", extra={"event": "feed.consumer_error"})


class FeedSynchronizer:
    """Maintains one standing query per subscription."""

    def __init__(self, store: DocumentStore, *, collection: str = "posts") -> None:
        self._store = store
        self._collection = collection

    @property
    def collection(self) -> str:
        return self._collection

    def subscribe(
        self,
        on_snapshot: SnapshotHandler,
        on_failure: FailureHandler | None = None,
    ) -> FeedSubscription:
        subscription = FeedSubscription(on_snapshot, on_failure)
        LOGGER.info(
            "Subscribing to feed",
            extra={"event": "feed.subscribe", "collection": self._collection},
        )
        try:
            registration = self._store.listen(
                self._collection,
                order_by=ORDER_FIELD,
                descending=True,
                on_snapshot=subscription._deliver,
                on_error=subscription._fail,
            )
        except BackendError as exc:
            subscription._fail(exc)
            return subscription
        subscription._attach(registration)
        return subscription
