"""Wires the Firebase adapters into a dashboard controller."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from ..platforms.firebase import FirebaseAuthSession, FirebaseStorageBucket, FirestoreDocumentStore
from ..security import build_secret_provider
from ..services.composer import PostComposer
from ..services.feed import FeedSynchronizer
from ..services.lifecycle import PostLifecycleController
from ..services.media import MediaUploader
from ..services.models import FeedSnapshot, Notice
from ..settings import AppConfig


@dataclass(slots=True)
class Dashboard:
    """Everything one dashboard session needs."""

    config: AppConfig
    auth: FirebaseAuthSession
    store: FirestoreDocumentStore
    storage: FirebaseStorageBucket
    controller: PostLifecycleController

    def close(self) -> None:
        self.controller.unmount()
        self.store.close()


def build_auth(config: AppConfig) -> FirebaseAuthSession:
    secrets = build_secret_provider(
        config.paths.secrets_file,
        overrides={"firebase.api_key": config.firebase.api_key},
    )
    return FirebaseAuthSession(
        token_cache_path=config.paths.token_cache,
        secrets=secrets,
        timeout=config.http.timeout,
    )


def build_dashboard(
    config: AppConfig,
    *,
    auth: FirebaseAuthSession | None = None,
    notify: Callable[[Notice], None] | None = None,
    confirm: Callable[[str], bool] | None = None,
    on_snapshot: Callable[[FeedSnapshot], None] | None = None,
    on_progress: Callable[[float], None] | None = None,
) -> Dashboard:
    auth = auth or build_auth(config)
    store = FirestoreDocumentStore(
        project_id=config.firebase.project_id,
        database=config.firebase.database,
        token_source=auth.id_token,
        timeout=config.http.timeout,
        poll_interval=config.feed.poll_interval,
    )
    storage = FirebaseStorageBucket(
        bucket=config.firebase.storage_bucket,
        token_source=auth.id_token,
        timeout=config.http.timeout,
        chunk_size=config.upload.chunk_size,
    )
    uploader = MediaUploader(storage)
    composer = PostComposer(store, uploader, collection=config.feed.collection)
    synchronizer = FeedSynchronizer(store, collection=config.feed.collection)
    controller = PostLifecycleController(
        auth=auth,
        store=store,
        synchronizer=synchronizer,
        composer=composer,
        notify=notify,
        on_snapshot=on_snapshot,
        confirm=confirm,
        on_progress=on_progress,
    )
    return Dashboard(config=config, auth=auth, store=store, storage=storage, controller=controller)


__all__ = ["Dashboard", "build_auth", "build_dashboard"]
