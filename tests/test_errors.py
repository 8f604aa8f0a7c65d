"""
Error Envelope Tests
"""

import pytest
from httpx import AsyncClient

from app.core.errors import (
    AppError,
    AuthenticationError,
    BadRequestError,
    ForbiddenError,
    NotFoundError,
)


@pytest.mark.parametrize(
    "error_cls, status_code, name",
    [
        (BadRequestError, 400, "Bad Request"),
        (AuthenticationError, 401, "Unauthorized"),
        (ForbiddenError, 403, "Forbidden"),
        (NotFoundError, 404, "Not Found"),
    ],
)
def test_error_taxonomy(error_cls, status_code, name):
    error = error_cls("nope")

    assert isinstance(error, AppError)
    assert error.to_dict() == {"status": status_code, "message": "nope", "error": name}


@pytest.mark.asyncio
async def test_request_validation_renders_bad_request(client: AsyncClient, auth_headers, seed):
    response = await client.post(
        "/api/v1/chat/initiate", json={"productId": "lamp"}, headers=auth_headers(seed.bob)
    )

    assert response.status_code == 400
    body = response.json()
    assert body["status"] == 400
    assert body["error"] == "Bad Request"


@pytest.mark.asyncio
async def test_missing_bearer_renders_unauthorized(client: AsyncClient):
    response = await client.get("/api/v1/chat/heads")

    assert response.status_code == 401
    assert response.json()["error"] == "Unauthorized"
