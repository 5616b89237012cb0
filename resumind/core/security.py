from __future__ import annotations

from typing import Protocol

from fastapi import Header

from resumind.core.config import settings


class IdentityProvider(Protocol):
    def is_authenticated(self) -> bool: ...


class ApiKeyIdentity:
    def __init__(self, presented_key: str | None, *, auth_mode: str | None = None, api_key: str | None = None):
        self._presented_key = presented_key
        self._auth_mode = auth_mode or settings.auth_mode
        self._api_key = api_key if api_key is not None else settings.api_key

    def is_authenticated(self) -> bool:
        if self._auth_mode == "public":
            return True
        if not self._api_key:
            return False
        return self._presented_key == self._api_key


def get_identity(x_api_key: str | None = Header(default=None, alias="X-API-Key")) -> IdentityProvider:
    return ApiKeyIdentity(x_api_key)
