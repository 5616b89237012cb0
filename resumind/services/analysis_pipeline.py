"""Upload -> rasterize -> upload image -> checkpoint -> analyze -> persist.

A run is an async generator of ``PipelineEvent`` values. Each stage either
hands its output to the next one or raises a ``PipelineError``; ``run``
catches those at the stage boundary and ends the stream with a single
``failed`` event, so callers only ever observe events, never exceptions.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Mapping
from typing import Any, AsyncGenerator, Callable

from resumind.ai.prompt import build_instructions
from resumind.ai.types import InferenceClient
from resumind.core.platform import PlatformReadiness
from resumind.core.security import IdentityProvider
from resumind.normalize.feedback import feedback_to_payload, normalize_feedback
from resumind.rasterize.pdf2img import RasterResult, rasterize
from resumind.schemas.analysis import AnalysisRecord, PipelineEvent
from resumind.services.feedback_store import FeedbackStore
from resumind.storage.blob_store import BlobRef, BlobStore, BlobStoreError
from resumind.storage.kv_store import KeyValueStore, KeyValueStoreError

logger = logging.getLogger(__name__)

STAGE_PRECONDITION = "precondition"
STAGE_UPLOAD_DOCUMENT = "upload-document"
STAGE_CONVERT = "convert"
STAGE_UPLOAD_IMAGE = "upload-image"
STAGE_PREPARE_RECORD = "prepare-record"
STAGE_ANALYZING = "analyzing"
STAGE_PERSIST = "persist"
STAGE_COMPLETE = "complete"

STATUS_MESSAGES = {
    STAGE_UPLOAD_DOCUMENT: "Uploading the file...",
    STAGE_CONVERT: "Converting to image...",
    STAGE_UPLOAD_IMAGE: "Uploading the image...",
    STAGE_PREPARE_RECORD: "Preparing data...",
    STAGE_ANALYZING: "Analyzing...",
    STAGE_PERSIST: "Saving feedback...",
    STAGE_COMPLETE: "Analysis complete.",
}


class PipelineError(RuntimeError):
    def __init__(self, stage: str, reason: str, *, code: str = "stage_failed"):
        super().__init__(reason)
        self.stage = stage
        self.reason = reason
        self.code = code


class PreconditionError(PipelineError):
    def __init__(self, reason: str, *, code: str = "precondition_failed"):
        super().__init__(STAGE_PRECONDITION, reason, code=code)


class StageIOError(PipelineError):
    def __init__(self, stage: str, reason: str):
        super().__init__(stage, reason, code="stage_io_error")


class FormatError(PipelineError):
    def __init__(self, stage: str, reason: str):
        super().__init__(stage, reason, code="format_error")


def _field(value: Any, name: str) -> Any:
    if isinstance(value, Mapping):
        return value.get(name)
    return getattr(value, name, None)


def extract_reply_text(reply: Any) -> str | None:
    """Pull the text payload out of an inference reply.

    Accepts a bare string, or ``reply.message.content`` being either a string
    or a list whose first element carries a string ``text``.
    """
    if isinstance(reply, str):
        return reply
    content = _field(_field(reply, "message"), "content")
    if isinstance(content, str):
        return content
    if isinstance(content, (list, tuple)) and content:
        text = _field(content[0], "text")
        if isinstance(text, str):
            return text
    return None


def _status(stage: str) -> PipelineEvent:
    return PipelineEvent(kind="status", stage=stage, message=STATUS_MESSAGES[stage])


class AnalysisPipeline:
    def __init__(
        self,
        *,
        blob_store: BlobStore,
        record_store: KeyValueStore,
        inference: InferenceClient,
        readiness: PlatformReadiness,
        identity: IdentityProvider,
        rasterizer: Callable[..., RasterResult] = rasterize,
        raster_scale: float = 4.0,
        ready_timeout_s: float = 10.0,
        id_factory: Callable[[], str] = lambda: uuid.uuid4().hex,
    ):
        self._blobs = blob_store
        self._feedback_store = FeedbackStore(record_store)
        self._inference = inference
        self._readiness = readiness
        self._identity = identity
        self._rasterizer = rasterizer
        self._raster_scale = raster_scale
        self._ready_timeout_s = ready_timeout_s
        self._id_factory = id_factory

    async def _check_preconditions(self) -> None:
        if not await self._readiness.wait(self._ready_timeout_s):
            raise PreconditionError("Service is not ready yet. Please wait and try again.", code="not_ready")
        if not self._identity.is_authenticated():
            raise PreconditionError("Please sign in first.", code="not_authenticated")

    async def _upload(self, stage: str, data: bytes, filename: str, what: str) -> BlobRef:
        try:
            ref = await asyncio.to_thread(self._blobs.store, data, filename)
        except BlobStoreError as exc:
            raise StageIOError(stage, f"Failed to upload {what}: {exc}") from exc
        if ref is None or not getattr(ref, "path", None):
            raise StageIOError(stage, f"Failed to upload {what}")
        return ref

    async def _save(self, stage: str, record: AnalysisRecord) -> None:
        try:
            await asyncio.to_thread(self._feedback_store.save_record, record)
        except KeyValueStoreError as exc:
            raise StageIOError(stage, f"Failed to save analysis record: {exc}") from exc

    async def _analyze(self, document_ref: str, instruction: str) -> dict[str, Any]:
        try:
            reply = await self._inference.converse(document_ref, instruction)
        except Exception as exc:  # noqa: BLE001 - any remote failure ends the run at this stage
            raise StageIOError(STAGE_ANALYZING, f"AI analysis failed: {exc}") from exc

        text = extract_reply_text(reply)
        if not text:
            raise FormatError(STAGE_ANALYZING, "Unexpected AI response format")

        feedback = normalize_feedback(text)
        if feedback is None:
            raise FormatError(STAGE_ANALYZING, "AI response was empty")
        return feedback_to_payload(feedback)

    async def run(
        self,
        document: bytes,
        *,
        filename: str = "resume.pdf",
        company_name: str = "",
        job_title: str = "",
        job_description: str = "",
    ) -> AsyncGenerator[PipelineEvent, None]:
        run_id = uuid.uuid4().hex[:12]
        stage = STAGE_PRECONDITION
        try:
            await self._check_preconditions()

            stage = STAGE_UPLOAD_DOCUMENT
            yield _status(stage)
            document_ref = await self._upload(stage, document, filename, "file")

            stage = STAGE_CONVERT
            yield _status(stage)
            image = await asyncio.to_thread(
                self._rasterizer, document, scale=self._raster_scale, filename=filename
            )
            if image.image_bytes:
                yield PipelineEvent(kind="preview", stage=stage, image_bytes=image.image_bytes)
            if image.error or not image.image_bytes:
                raise FormatError(stage, image.error or "Failed to convert PDF to image")

            stage = STAGE_UPLOAD_IMAGE
            yield _status(stage)
            image_ref = await self._upload(stage, image.image_bytes, image.filename or "resume.png", "image")

            stage = STAGE_PREPARE_RECORD
            yield _status(stage)
            record = AnalysisRecord(
                id=self._id_factory(),
                document_ref=document_ref.path,
                image_ref=image_ref.path,
                company_name=company_name,
                job_title=job_title,
                job_description=job_description,
                feedback=None,
            )
            await self._save(stage, record)

            stage = STAGE_ANALYZING
            yield _status(stage)
            instruction = build_instructions(job_title, job_description, company_name)
            record.feedback = await self._analyze(record.document_ref, instruction)

            stage = STAGE_PERSIST
            yield _status(stage)
            await self._save(stage, record)
        except PipelineError as exc:
            logger.warning(
                "analysis_stage_failed run=%s stage=%s code=%s: %s", run_id, exc.stage, exc.code, exc.reason
            )
            yield PipelineEvent(kind="failed", stage=exc.stage, reason=exc.reason)
            return
        except Exception as exc:  # noqa: BLE001 - every fault ends as a failed event
            logger.exception("analysis_stage_crashed run=%s stage=%s", run_id, stage)
            yield PipelineEvent(kind="failed", stage=stage, reason=f"Unexpected error: {exc}")
            return

        logger.info("analysis_complete run=%s record=%s", run_id, record.id)
        yield PipelineEvent(
            kind="complete",
            stage=STAGE_COMPLETE,
            message=STATUS_MESSAGES[STAGE_COMPLETE],
            record_id=record.id,
        )

    async def run_to_completion(self, document: bytes, **kwargs: Any) -> list[PipelineEvent]:
        return [event async for event in self.run(document, **kwargs)]
