"""
Unit tests for the reasoning-service client.

All requests go to an httpx.MockTransport; no network is used.
"""

import json

import httpx
import pytest

from webtasks.core.exceptions import MalformedResponse, TransportFailure
from webtasks.core.models import ReasoningRequest, SnapshotError
from webtasks.infrastructure.reasoning import ReasoningClient


@pytest.fixture
def request_body():
    return ReasoningRequest(
        user_prompt="What is on this page?",
        previous_answer="",
        page_html="<html></html>",
        page_snapshot=SnapshotError(error="boom"),
        constant_prompt="instr",
    )


def client_for(settings, handler):
    return ReasoningClient(settings, transport=httpx.MockTransport(handler))


# ============================================================================
# TEST: Successful Exchange
# ============================================================================

class TestAsk:
    """Test ask() request shape and success path."""

    @pytest.mark.asyncio
    async def test_posts_wire_body(self, mock_settings, request_body):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"answer": "A shop.", "model": "ignored"})

        async with client_for(mock_settings, handler) as client:
            response = await client.ask(request_body)

        assert response.answer == "A shop."
        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == "https://reasoning.test/answer"
        assert request.headers["content-type"] == "application/json"
        assert json.loads(request.content) == {
            "userPrompt": "What is on this page?",
            "previousAnswer": "",
            "pageHtml": "<html></html>",
            "pageSnapshot": {"error": "boom"},
            "constantPrompt": "instr",
        }


# ============================================================================
# TEST: Failures
# ============================================================================

class TestAskFailures:
    """Test conversion of failures into TransportFailure/MalformedResponse."""

    @pytest.mark.asyncio
    async def test_error_status(self, mock_settings, request_body):
        async with client_for(mock_settings, lambda r: httpx.Response(500, text="oops")) as client:
            with pytest.raises(TransportFailure) as exc_info:
                await client.ask(request_body)

        assert exc_info.value.message == "AI request failed (500)"
        assert exc_info.value.status_code == 500
        assert not isinstance(exc_info.value, MalformedResponse)

    @pytest.mark.asyncio
    async def test_non_json_body(self, mock_settings, request_body):
        async with client_for(mock_settings, lambda r: httpx.Response(200, text="<html>")) as client:
            with pytest.raises(MalformedResponse) as exc_info:
                await client.ask(request_body)

        assert exc_info.value.message.startswith("AI request error:")

    @pytest.mark.asyncio
    async def test_undecodable_body(self, mock_settings, request_body):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b'{"answer": "\xff"}', headers={"content-type": "application/json"})

        async with client_for(mock_settings, handler) as client:
            with pytest.raises(MalformedResponse) as exc_info:
                await client.ask(request_body)

        assert isinstance(exc_info.value, TransportFailure)
        assert exc_info.value.status_code == 200

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [{"text": "hi"}, {"answer": None}, {"answer": 3}, ["hi"]])
    async def test_missing_answer(self, mock_settings, request_body, payload):
        async with client_for(mock_settings, lambda r: httpx.Response(200, json=payload)) as client:
            with pytest.raises(MalformedResponse):
                await client.ask(request_body)

    @pytest.mark.asyncio
    async def test_connection_error(self, mock_settings, request_body):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with client_for(mock_settings, handler) as client:
            with pytest.raises(TransportFailure) as exc_info:
                await client.ask(request_body)

        assert exc_info.value.message == "AI request error: connection refused"
        assert exc_info.value.status_code is None
