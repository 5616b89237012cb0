from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

EventKind = Literal["status", "preview", "complete", "failed"]


class AnalysisRecord(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    document_ref: str
    image_ref: str
    company_name: str = ""
    job_title: str = ""
    job_description: str = ""
    feedback: dict[str, Any] | None = None

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class PipelineEvent(BaseModel):
    """One observation emitted by an analysis run.

    ``status`` events carry the stage and a user-facing message. ``preview``
    carries the rasterized first page. A run always ends with exactly one
    ``complete`` (with ``record_id``) or ``failed`` (with ``stage`` and
    ``reason``) event.
    """

    kind: EventKind
    stage: str | None = None
    message: str | None = None
    record_id: str | None = None
    reason: str | None = None
    image_bytes: bytes | None = Field(default=None, exclude=True)

    @property
    def terminal(self) -> bool:
        return self.kind in {"complete", "failed"}


class AnalysisRecordSummary(BaseModel):
    id: str
    company_name: str
    job_title: str
    overall_rating: float | None = None
