from __future__ import annotations

import asyncio
import json
from datetime import UTC, datetime

import httpx
import pytest
from jose import jwt

from medequip_transfers.domain.actors import ActorContext, UserRole
from medequip_transfers.domain.errors import (
    RpcFunctionNotFoundError,
    TransferBackendError,
    TransferBackendUnavailableError,
    TransferPermissionError,
)
from medequip_transfers.domain.rpc import RpcFunction
from medequip_transfers.infrastructure.rpc import PostgrestRpcClient

SECRET = "test-jwt-secret"


def _client(handler) -> PostgrestRpcClient:
    return PostgrestRpcClient(
        "https://db.example.com/",
        api_key="anon-key",
        jwt_secret=SECRET,
        transport=httpx.MockTransport(handler),
    )


def _decode(token: str) -> dict:
    return jwt.decode(token, SECRET, algorithms=["HS256"], options={"verify_aud": False})


def test_call_posts_arguments_with_signed_actor_claims(manager) -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"data": [], "total": 0, "page": 1, "pageSize": 50})

    result = asyncio.run(
        _client(handler).call(
            RpcFunction.TRANSFER_REQUEST_LIST,
            {"p_page": 1, "p_statuses": ["approved"]},
            actor=manager,
        )
    )

    assert result["total"] == 0
    assert len(requests) == 1
    request = requests[0]
    assert request.method == "POST"
    assert str(request.url) == "https://db.example.com/rest/v1/rpc/transfer_request_list"
    assert request.headers["apikey"] == "anon-key"
    assert json.loads(request.content.decode()) == {"p_page": 1, "p_statuses": ["approved"]}

    scheme, token = request.headers["Authorization"].split(" ", 1)
    claims = _decode(token)
    assert scheme == "Bearer"
    assert claims["role"] == "authenticated"
    assert claims["app_role"] == "equipment_manager"
    assert claims["facility_id"] == 10
    assert claims["department"] == "Equipment Office"
    assert claims["sub"] == "1"


def test_admin_role_is_signed_as_global() -> None:
    client = _client(lambda request: httpx.Response(204))
    actor = ActorContext(user_id=7, role=UserRole.ADMIN)
    issued_at = datetime.now(UTC).replace(microsecond=0)

    claims = _decode(client.build_token(actor, now=issued_at))

    assert claims["app_role"] == "global"
    assert claims["exp"] - claims["iat"] == 120


def test_empty_body_returns_none(manager) -> None:
    result = asyncio.run(
        _client(lambda request: httpx.Response(204)).call(
            RpcFunction.TRANSFER_REQUEST_DELETE, {"p_id": 1}, actor=manager
        )
    )

    assert result is None


def test_missing_function_is_reported_distinctly(manager) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            404,
            json={
                "code": "PGRST202",
                "message": "Could not find the function public.transfer_request_counts",
                "hint": "Perhaps you meant transfer_request_list",
            },
        )

    with pytest.raises(RpcFunctionNotFoundError) as exc_info:
        asyncio.run(
            _client(handler).call(RpcFunction.TRANSFER_REQUEST_COUNTS, {}, actor=manager)
        )

    assert exc_info.value.code == "PGRST202"
    assert exc_info.value.status_code == 404
    assert "Could not find the function" in str(exc_info.value)


def test_other_not_found_errors_are_plain_backend_errors(manager) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"code": "P0002", "message": "Transfer 9 not found"})

    with pytest.raises(TransferBackendError) as exc_info:
        asyncio.run(_client(handler).call(RpcFunction.TRANSFER_REQUEST_DELETE, {}, actor=manager))

    assert not isinstance(exc_info.value, RpcFunctionNotFoundError)
    assert str(exc_info.value) == "Transfer 9 not found"


def test_authorization_failures_map_to_permission_errors(manager) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, json={"message": "permission denied for function"})

    with pytest.raises(TransferPermissionError, match="permission denied"):
        asyncio.run(_client(handler).call(RpcFunction.TRANSFER_REQUEST_UPDATE, {}, actor=manager))


@pytest.mark.parametrize(
    ("payload", "expected"),
    [
        ({"error": "boom", "message": "ignored"}, "boom"),
        ({"message": "duplicate key", "hint": "ignored"}, "duplicate key"),
        ({"hint": "check the id", "details": "ignored"}, "check the id"),
        ({"details": "Key (id)=(1) already exists."}, "Key (id)=(1) already exists."),
        ({"code": "23505"}, "HTTP 409"),
    ],
)
def test_error_message_precedence(manager, payload, expected) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(409, json=payload)

    with pytest.raises(TransferBackendError) as exc_info:
        asyncio.run(_client(handler).call(RpcFunction.TRANSFER_REQUEST_CREATE, {}, actor=manager))

    assert str(exc_info.value) == expected
    assert exc_info.value.status_code == 409


def test_gateway_errors_are_transient(manager) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="upstream unavailable")

    with pytest.raises(TransferBackendUnavailableError, match="upstream unavailable"):
        asyncio.run(_client(handler).call(RpcFunction.TRANSFER_REQUEST_LIST, {}, actor=manager))


def test_transport_errors_are_transient(manager) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransferBackendUnavailableError, match="connection refused"):
        asyncio.run(_client(handler).call(RpcFunction.TRANSFER_REQUEST_LIST, {}, actor=manager))


def test_blank_base_url_is_rejected() -> None:
    with pytest.raises(ValueError, match="cannot be empty"):
        PostgrestRpcClient("  /", api_key="key", jwt_secret=SECRET)
