from typing import Any, Protocol


class InferenceClient(Protocol):
    async def converse(self, document_ref: str, instruction: str) -> Any: ...

    def is_configured(self) -> bool: ...
