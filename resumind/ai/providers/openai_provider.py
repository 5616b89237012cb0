from __future__ import annotations

import asyncio
import base64
import logging
import time
from pathlib import PurePath
from typing import Any

from openai import AsyncOpenAI

from resumind.ai.config import AIConfig
from resumind.storage.blob_store import BlobStore

logger = logging.getLogger(__name__)

_IMAGE_MIME = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "webp": "image/webp",
}


def _document_part(document_ref: str, content: bytes) -> dict[str, Any]:
    name = PurePath(document_ref).name or "resume.pdf"
    ext = name.rsplit(".", 1)[-1].lower() if "." in name else "pdf"
    encoded = base64.b64encode(content).decode("utf-8")
    if ext in _IMAGE_MIME:
        return {
            "type": "image_url",
            "image_url": {"url": f"data:{_IMAGE_MIME[ext]};base64,{encoded}"},
        }
    return {
        "type": "file",
        "file": {"filename": name, "file_data": f"data:application/pdf;base64,{encoded}"},
    }


class OpenAIInferenceClient:
    def __init__(self, config: AIConfig, *, blob_store: BlobStore, temperature: float = 0.2):
        self._config = config
        self._blob_store = blob_store
        self._temperature = temperature
        self._client: AsyncOpenAI | None = None

    def is_configured(self) -> bool:
        return self._config.has_api_key

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self.is_configured():
                raise RuntimeError("OPENAI_API_KEY is missing")
            self._client = AsyncOpenAI(
                api_key=self._config.api_key,
                base_url=self._config.base_url,
                timeout=self._config.timeout_s,
                max_retries=self._config.max_retries,
            )
        return self._client

    async def converse(self, document_ref: str, instruction: str) -> dict[str, Any]:
        document = await asyncio.to_thread(self._blob_store.fetch, document_ref)
        create_kwargs: dict[str, Any] = {
            "model": self._config.model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        _document_part(document_ref, document),
                        {"type": "text", "text": instruction},
                    ],
                }
            ],
            "temperature": self._temperature,
        }
        if self._config.response_format == "json":
            create_kwargs["response_format"] = {"type": "json_object"}

        started = time.perf_counter()
        response = await self._get_client().chat.completions.create(**create_kwargs)
        content = response.choices[0].message.content if response.choices else None
        logger.info(
            "inference_reply model=%s latency_ms=%s chars=%s",
            self._config.model,
            int((time.perf_counter() - started) * 1000),
            len(content or ""),
        )
        return {"message": {"role": "assistant", "content": content}}
