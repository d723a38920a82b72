"""
Tests for the Gupshup delivery client, response classification and retry.
"""

import json
from urllib.parse import parse_qs

import httpx
import pytest

from messaging_gupshup.contracts.wire import TemplateMessage, TextMessage
from messaging_gupshup.errors import ApiError, AuthenticationError, GupshupError, SessionExpiredError
from messaging_gupshup.providers.gupshup.client import GupshupClient
from messaging_gupshup.providers.gupshup.retry import classify_response, retry_async
from messaging_gupshup.providers.stub import StubGupshupClient


class Recorder:
    """MockTransport handler replaying canned responses and recording requests."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def form(self, index: int = 0) -> dict[str, str]:
        parsed = parse_qs(self.requests[index].content.decode())
        return {key: values[0] for key, values in parsed.items()}


def make_client(recorder: Recorder) -> GupshupClient:
    return GupshupClient(
        api_key="test_api_key",
        source_phone="+1 (555) 000-1111",
        business_name="Pepper",
        retry_delay=0,
        transport=httpx.MockTransport(recorder),
    )


def submitted(message_id: str = "gs_msg_1") -> httpx.Response:
    return httpx.Response(200, json={"status": "submitted", "messageId": message_id})


class TestClassifyResponse:
    """Tests for mapping HTTP status and body to errors."""

    def test_submitted_is_success(self):
        """Test a submitted response is not an error."""
        assert classify_response(200, {"status": "submitted", "messageId": "m"}) is None

    def test_rate_limited_is_retryable(self):
        """Test 429 is a retryable rate limit error."""
        error = classify_response(429, {})

        assert isinstance(error, ApiError)
        assert error.code == "RATE_LIMITED"
        assert error.retryable is True

    @pytest.mark.parametrize("status_code", [401, 403])
    def test_auth_failure(self, status_code):
        """Test 401 and 403 are non-retryable authentication errors."""
        error = classify_response(status_code, {})

        assert isinstance(error, AuthenticationError)
        assert error.retryable is False

    def test_session_expired_by_status(self):
        """Test status 470 means the session expired."""
        assert isinstance(classify_response(470, {}), SessionExpiredError)

    def test_session_expired_by_body_code(self):
        """Test error code 470 in the body means the session expired."""
        body = {"status": "error", "error": {"code": 470, "message": "Re-engagement required"}}

        assert isinstance(classify_response(400, body), SessionExpiredError)

    def test_server_error_is_retryable(self):
        """Test 5xx is a retryable server error."""
        error = classify_response(503, {})

        assert error.code == "SERVER_ERROR"
        assert error.retryable is True

    def test_body_error(self):
        """Test an error body becomes an ApiError with its code."""
        body = {"status": "error", "error": {"code": "1002", "message": "Invalid destination"}}

        error = classify_response(200, body)

        assert isinstance(error, ApiError)
        assert error.code == "1002"
        assert error.message == "Invalid destination"
        assert error.retryable is False


class TestRetryAsync:
    """Tests for the generic retry driver."""

    @pytest.mark.asyncio
    async def test_linear_backoff(self):
        """Test retryable errors back off attempt x delay seconds."""
        delays = []
        attempts = []

        async def sleep(seconds):
            delays.append(seconds)

        async def operation(attempt):
            attempts.append(attempt)
            if attempt < 3:
                raise ApiError("busy", code="SERVER_ERROR", retryable=True)
            return "ok"

        assert await retry_async(operation, max_attempts=3, delay=1.0, sleep=sleep) == "ok"
        assert attempts == [1, 2, 3]
        assert delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_non_retryable_raises_immediately(self):
        """Test non-retryable errors are not retried."""
        calls = []

        async def operation(attempt):
            calls.append(attempt)
            raise AuthenticationError()

        with pytest.raises(AuthenticationError):
            await retry_async(operation, max_attempts=3, delay=0)

        assert calls == [1]

    @pytest.mark.asyncio
    async def test_exhaustion_raises_last_error(self):
        """Test the last error is raised once attempts run out."""
        async def operation(attempt):
            raise ApiError(f"fail {attempt}", retryable=True)

        with pytest.raises(ApiError, match="fail 3"):
            await retry_async(operation, max_attempts=3, delay=0)

    @pytest.mark.asyncio
    async def test_zero_attempts_raises_generic_error(self):
        """Test zero attempts raises a generic error."""
        async def operation(attempt):
            return "never"

        with pytest.raises(GupshupError, match="Unknown error sending message"):
            await retry_async(operation, max_attempts=0)


class TestGupshupClient:
    """Tests for GupshupClient against a mocked transport."""

    @pytest.mark.asyncio
    async def test_send_text_request_shape(self):
        """Test the form fields, header and URL of a send."""
        recorder = Recorder(submitted())
        client = make_client(recorder)

        response = await client.send_text("+55 11 99999-9999", "Hello")
        await client.close()

        assert response.submitted is True
        assert response.message_id == "gs_msg_1"

        request = recorder.requests[0]
        assert request.method == "POST"
        assert str(request.url) == "https://api.gupshup.io/wa/api/v1/msg"
        assert request.headers["apikey"] == "test_api_key"

        form = recorder.form()
        assert form["channel"] == "whatsapp"
        assert form["source"] == "15550001111"
        assert form["destination"] == "5511999999999"
        assert form["src.name"] == "Pepper"
        assert json.loads(form["message"]) == {"type": "text", "text": "Hello"}

    @pytest.mark.asyncio
    async def test_send_template(self):
        """Test sending a template message."""
        recorder = Recorder(submitted())
        client = make_client(recorder)

        await client.send_template("5511999999999", "tmpl_1", ["Maria"])

        assert json.loads(recorder.form()["message"]) == {
            "type": "template",
            "template": {"id": "tmpl_1", "params": ["Maria"]},
        }

    @pytest.mark.asyncio
    async def test_retries_server_error(self):
        """Test a 500 followed by success takes two attempts."""
        recorder = Recorder(httpx.Response(500, json={}), submitted("gs_after_retry"))
        client = make_client(recorder)

        response = await client.send_message("5511999999999", TextMessage(text="hi"))

        assert response.message_id == "gs_after_retry"
        assert len(recorder.requests) == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_three_attempts(self):
        """Test rate limiting gives up after three attempts."""
        recorder = Recorder(*[httpx.Response(429, json={}) for _ in range(3)])
        client = make_client(recorder)

        with pytest.raises(ApiError) as exc_info:
            await client.send_message("5511999999999", TextMessage(text="hi"))

        assert exc_info.value.code == "RATE_LIMITED"
        assert len(recorder.requests) == 3

    @pytest.mark.asyncio
    async def test_retry_disabled(self):
        """Test retry=False makes a single attempt."""
        recorder = Recorder(httpx.Response(503, json={}))
        client = make_client(recorder)

        with pytest.raises(ApiError):
            await client.send_message("5511999999999", TextMessage(text="hi"), retry=False)

        assert len(recorder.requests) == 1

    @pytest.mark.asyncio
    async def test_network_error_is_retried(self):
        """Test network errors are retried."""
        recorder = Recorder(httpx.ConnectError("connection refused"), submitted())
        client = make_client(recorder)

        response = await client.send_message("5511999999999", TextMessage(text="hi"))

        assert response.submitted is True
        assert len(recorder.requests) == 2

    @pytest.mark.asyncio
    async def test_auth_failure_not_retried(self):
        """Test authentication failures are not retried."""
        recorder = Recorder(httpx.Response(401, json={"status": "error"}))
        client = make_client(recorder)

        with pytest.raises(AuthenticationError):
            await client.send_message("5511999999999", TextMessage(text="hi"))

        assert len(recorder.requests) == 1

    @pytest.mark.asyncio
    async def test_session_expired(self):
        """Test a 470 response raises SessionExpiredError."""
        recorder = Recorder(httpx.Response(470, json={"status": "error"}))
        client = make_client(recorder)

        with pytest.raises(SessionExpiredError):
            await client.send_message("5511999999999", TextMessage(text="hi"))

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        """Test a non-JSON 200 response is not treated as submitted."""
        recorder = Recorder(httpx.Response(200, text="OK"))
        client = make_client(recorder)

        response = await client.send_message("5511999999999", TextMessage(text="hi"))

        assert response.submitted is False


class TestStubClient:
    """Tests for the in-memory stub client."""

    @pytest.mark.asyncio
    async def test_records_messages(self):
        """Test the stub records sent messages with normalized destinations."""
        client = StubGupshupClient(source_phone="+1 555 000 1111")

        response = await client.send_template("+55 11 99999-9999", "tmpl_1")

        assert response.submitted is True
        assert response.message_id.startswith("stub_msg_")
        sent = client.get_sent_messages()
        assert sent[0]["destination"] == "5511999999999"
        assert sent[0]["message"] == TemplateMessage(template_id="tmpl_1").to_wire()

        client.clear_sent_messages()
        assert client.get_sent_messages() == []

    @pytest.mark.asyncio
    async def test_queued_errors(self):
        """Test queued errors are raised once, in order."""
        client = StubGupshupClient()
        client.fail_next(SessionExpiredError())

        with pytest.raises(SessionExpiredError):
            await client.send_message("1", TextMessage(text="a"))

        assert (await client.send_message("1", TextMessage(text="b"))).submitted is True
