from __future__ import annotations

import asyncio
import logging

from resumind.ai.factory import get_inference_client
from resumind.ai.types import InferenceClient
from resumind.core.config import Settings, settings as default_settings
from resumind.storage.blob_store import BlobStore, FileSystemBlobStore
from resumind.storage.kv_store import KeyValueStore, SQLiteKeyValueStore

logger = logging.getLogger(__name__)


class PlatformReadiness:
    """Readiness flag that callers can wait on with a bounded deadline."""

    def __init__(self, ready: bool = False):
        self._event = asyncio.Event()
        if ready:
            self._event.set()

    def mark_ready(self) -> None:
        self._event.set()

    def is_ready(self) -> bool:
        return self._event.is_set()

    async def wait(self, timeout_s: float) -> bool:
        if self._event.is_set():
            return True
        try:
            await asyncio.wait_for(self._event.wait(), timeout=max(0.0, timeout_s))
        except asyncio.TimeoutError:
            return False
        return True


class Platform:
    def __init__(
        self,
        *,
        blob_store: BlobStore,
        record_store: KeyValueStore,
        inference: InferenceClient,
        readiness: PlatformReadiness | None = None,
        ready_timeout_s: float = 10.0,
        raster_scale: float = 4.0,
    ):
        self.blob_store = blob_store
        self.record_store = record_store
        self.inference = inference
        self.readiness = readiness or PlatformReadiness()
        self.ready_timeout_s = ready_timeout_s
        self.raster_scale = raster_scale

    @classmethod
    def from_settings(cls, cfg: Settings = default_settings) -> "Platform":
        blob_store = FileSystemBlobStore(cfg.blob_store_dir)
        return cls(
            blob_store=blob_store,
            record_store=SQLiteKeyValueStore(cfg.record_db_path),
            inference=get_inference_client(blob_store),
            ready_timeout_s=cfg.platform_ready_timeout_s,
            raster_scale=cfg.raster_scale,
        )

    async def start(self) -> None:
        for store in (self.blob_store, self.record_store):
            init = getattr(store, "init", None)
            if init is not None:
                await asyncio.to_thread(init)
        if not self.inference.is_configured():
            logger.warning("platform_not_ready reason=inference_not_configured")
            return
        self.readiness.mark_ready()
        logger.info("platform_ready")

    def close(self) -> None:
        close = getattr(self.record_store, "close", None)
        if close is not None:
            close()
