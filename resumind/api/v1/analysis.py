import asyncio
import base64
import contextlib
import json
import logging
from typing import Any, AsyncGenerator, AsyncIterator

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status
from fastapi.responses import Response, StreamingResponse

from resumind.api.deps import get_platform
from resumind.core.config import settings
from resumind.core.platform import Platform
from resumind.core.rate_limit import analysis_rate_limit
from resumind.core.security import IdentityProvider, get_identity
from resumind.normalize.feedback import normalize_feedback
from resumind.schemas.analysis import AnalysisRecord, AnalysisRecordSummary, PipelineEvent
from resumind.schemas.feedback import Feedback
from resumind.services.analysis_pipeline import AnalysisPipeline
from resumind.services.feedback_store import FeedbackStore
from resumind.storage.blob_store import BlobStoreError

logger = logging.getLogger(__name__)

router = APIRouter()

PDF_MAGIC = b"%PDF-"


def _sse_event(event: str, payload: dict[str, Any]) -> str:
    data = json.dumps(payload, ensure_ascii=False)
    return f"event: {event}\ndata: {data}\n\n"


def _event_payload(event: PipelineEvent) -> dict[str, Any]:
    if event.kind == "preview":
        encoded = base64.b64encode(event.image_bytes or b"").decode("utf-8")
        return {"stage": event.stage, "image": f"data:image/png;base64,{encoded}"}
    if event.kind == "complete":
        return {"record_id": event.record_id, "message": event.message}
    if event.kind == "failed":
        return {"stage": event.stage, "reason": event.reason}
    return {"stage": event.stage, "message": event.message}


def _validate_upload(content: bytes) -> None:
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file is empty.")
    if len(content) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File too large. Maximum size is {settings.max_upload_bytes // (1024 * 1024)} MB.",
        )
    if not content.startswith(PDF_MAGIC):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only PDF resumes are supported.")


async def stream_events(request: Request, events: AsyncGenerator[PipelineEvent, None]) -> AsyncIterator[str]:
    """SSE frames for one run; the run is closed as soon as the client goes away."""
    yield _sse_event("connected", {"ok": True})
    async with contextlib.aclosing(events):
        async for event in events:
            if await request.is_disconnected():
                logger.info("analysis_stream_abandoned stage=%s", event.stage)
                break
            yield _sse_event(event.kind, _event_payload(event))


def build_pipeline(platform: Platform, identity: IdentityProvider) -> AnalysisPipeline:
    return AnalysisPipeline(
        blob_store=platform.blob_store,
        record_store=platform.record_store,
        inference=platform.inference,
        readiness=platform.readiness,
        identity=identity,
        raster_scale=platform.raster_scale,
        ready_timeout_s=platform.ready_timeout_s,
    )


@router.post("/analysis")
@analysis_rate_limit()
async def start_analysis(
    request: Request,
    file: UploadFile = File(...),
    company_name: str = Form(default=""),
    job_title: str = Form(default=""),
    job_description: str = Form(default=""),
    platform: Platform = Depends(get_platform),
    identity: IdentityProvider = Depends(get_identity),
):
    content = await file.read()
    _validate_upload(content)
    pipeline = build_pipeline(platform, identity)

    events = pipeline.run(
        content,
        filename=file.filename or "resume.pdf",
        company_name=company_name.strip(),
        job_title=job_title.strip(),
        job_description=job_description.strip(),
    )

    return StreamingResponse(
        stream_events(request, events),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.get("/analysis", response_model=list[AnalysisRecordSummary])
async def list_analyses(platform: Platform = Depends(get_platform)):
    store = FeedbackStore(platform.record_store)
    records = await asyncio.to_thread(store.list_records)
    summaries = []
    for record in records:
        feedback = normalize_feedback(record.feedback)
        summaries.append(
            AnalysisRecordSummary(
                id=record.id,
                company_name=record.company_name,
                job_title=record.job_title,
                overall_rating=feedback.overall_rating if feedback else None,
            )
        )
    return summaries


async def _get_record_or_404(platform: Platform, record_id: str) -> AnalysisRecord:
    record = await asyncio.to_thread(FeedbackStore(platform.record_store).get_record, record_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Analysis not found.")
    return record


@router.get("/analysis/{record_id}", response_model=AnalysisRecord, response_model_by_alias=True)
async def get_analysis(record_id: str, platform: Platform = Depends(get_platform)):
    return await _get_record_or_404(platform, record_id)


@router.get("/analysis/{record_id}/feedback", response_model=Feedback, response_model_by_alias=True)
async def get_analysis_feedback(record_id: str, platform: Platform = Depends(get_platform)):
    record = await _get_record_or_404(platform, record_id)
    feedback = normalize_feedback(record.feedback)
    if feedback is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Feedback is not available yet.")
    return feedback


async def _blob_response(platform: Platform, ref: str, media_type: str) -> Response:
    try:
        content = await asyncio.to_thread(platform.blob_store.fetch, ref)
    except BlobStoreError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found.") from exc
    return Response(content=content, media_type=media_type)


@router.get("/analysis/{record_id}/document")
async def get_analysis_document(record_id: str, platform: Platform = Depends(get_platform)):
    record = await _get_record_or_404(platform, record_id)
    return await _blob_response(platform, record.document_ref, "application/pdf")


@router.get("/analysis/{record_id}/image")
async def get_analysis_image(record_id: str, platform: Platform = Depends(get_platform)):
    record = await _get_record_or_404(platform, record_id)
    return await _blob_response(platform, record.image_ref, "image/png")
