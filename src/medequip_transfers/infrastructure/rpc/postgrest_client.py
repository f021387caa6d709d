"""HTTP client for PostgREST-style remote procedure endpoints."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import UTC, datetime, timedelta
from typing import Any
from urllib.parse import quote

import httpx
from jose import jwt

from medequip_transfers.domain.actors import ActorContext, UserRole
from medequip_transfers.domain.errors import (
    RpcFunctionNotFoundError,
    TransferBackendError,
    TransferBackendUnavailableError,
    TransferPermissionError,
)
from medequip_transfers.domain.rpc import MISSING_FUNCTION_CODE, RpcFunction

logger = logging.getLogger(__name__)

_TOKEN_LIFETIME = timedelta(minutes=2)


class PostgrestRpcClient:
    """Call `/rest/v1/rpc/{function}` with a short-lived per-actor token."""

    def __init__(
        self,
        base_url: str,
        *,
        api_key: str,
        jwt_secret: str,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = self._normalize_base_url(base_url)
        self._api_key = api_key
        self._jwt_secret = jwt_secret
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    async def call(
        self,
        function: RpcFunction,
        args: Mapping[str, Any] | None = None,
        *,
        actor: ActorContext,
    ) -> Any:
        """POST `args` to the function endpoint and return the decoded body."""

        url = self._endpoint(function)
        headers = {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self.build_token(actor)}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout_seconds,
                transport=self._transport,
            ) as http_client:
                response = await http_client.post(url, json=dict(args or {}), headers=headers)
        except httpx.HTTPError as exc:
            raise TransferBackendUnavailableError(f"POST {url} failed: {exc}") from exc

        self._ensure_success(function, response)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise TransferBackendError(
                f"{function} returned a non-JSON body.",
                status_code=response.status_code,
            ) from exc

    def build_token(self, actor: ActorContext, *, now: datetime | None = None) -> str:
        """Sign the claims the backend uses for tenant and role checks."""

        issued_at = now or datetime.now(UTC)
        app_role = UserRole.GLOBAL if actor.role is UserRole.ADMIN else actor.role
        claims: dict[str, Any] = {
            "role": "authenticated",
            "app_role": app_role.value,
            "facility_id": actor.facility_id,
            "department": actor.department,
            "user_id": actor.user_id,
            "allowed_facility_ids": list(actor.allowed_facility_ids),
            "iat": issued_at,
            "exp": issued_at + _TOKEN_LIFETIME,
        }
        if actor.user_id is not None:
            claims["sub"] = str(actor.user_id)
        return jwt.encode(claims, self._jwt_secret, algorithm="HS256")

    def _endpoint(self, function: RpcFunction) -> str:
        return f"{self._base_url}/rest/v1/rpc/{quote(function.value, safe='')}"

    def _ensure_success(self, function: RpcFunction, response: httpx.Response) -> None:
        if response.is_success:
            return
        message, code = self._detail_from_response(response)
        status_code = response.status_code
        logger.debug("RPC %s failed with %s: %s", function, status_code, message)

        if status_code == 404 and code == MISSING_FUNCTION_CODE:
            raise RpcFunctionNotFoundError(
                f"Backend function '{function}' is not available: {message}",
                status_code=status_code,
                code=code,
            )
        if status_code in (401, 403):
            raise TransferPermissionError(message)
        if status_code in (502, 503, 504):
            raise TransferBackendUnavailableError(message, status_code=status_code, code=code)
        raise TransferBackendError(message, status_code=status_code, code=code)

    def _detail_from_response(self, response: httpx.Response) -> tuple[str, str | None]:
        try:
            payload = response.json()
        except ValueError:
            text = response.text.strip()
            return text or f"HTTP {response.status_code}", None

        if not isinstance(payload, dict):
            return str(payload), None
        code = payload.get("code")
        for field in ("error", "message", "hint", "details"):
            value = payload.get(field)
            if isinstance(value, str) and value:
                return value, None if code is None else str(code)
        return f"HTTP {response.status_code}", None if code is None else str(code)

    def _normalize_base_url(self, base_url: str) -> str:
        normalized = base_url.strip().rstrip("/")
        if not normalized:
            raise ValueError("RPC base URL cannot be empty.")
        return normalized


__all__ = ["PostgrestRpcClient"]
