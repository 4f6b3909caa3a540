"""
Tests for circuit breaker implementation.
"""
import time

import httpx
import pytest

from textchain.core.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitState,
    ServiceClient,
)
from textchain.core.exceptions import (
    ExternalServiceError,
    ExternalServiceTimeoutError,
    ServiceUnavailableError,
)


class TestCircuitBreakerConfig:
    """Test circuit breaker configuration."""

    def test_default_config(self):
        """Test default configuration values."""
        config = CircuitBreakerConfig()
        assert config.failure_threshold == 5
        assert config.success_threshold == 3
        assert config.timeout == 60
        assert config.half_open_max_calls == 5


class TestCircuitBreaker:
    """Test circuit breaker functionality."""

    @pytest.fixture
    def circuit_breaker(self):
        """Create a circuit breaker for testing."""
        config = CircuitBreakerConfig(
            failure_threshold=3,
            success_threshold=2,
            timeout=1,  # Short timeout for testing
        )
        return CircuitBreaker("Test Service", config)

    @pytest.fixture
    def failing_function(self):
        """Create a function that always fails."""
        async def fail_func():
            raise ExternalServiceError("Test Service", "Service unavailable")
        return fail_func

    @pytest.fixture
    def successful_function(self):
        """Create a function that always succeeds."""
        async def success_func():
            return {"success": True}
        return success_func

    @pytest.mark.asyncio
    async def test_initial_closed_state(self, circuit_breaker):
        assert circuit_breaker.state == CircuitState.CLOSED
        assert circuit_breaker.failure_count == 0
        assert circuit_breaker.success_count == 0

    @pytest.mark.asyncio
    async def test_successful_call_resets_failure_count(self, circuit_breaker, successful_function, failing_function):
        """Test a success after failures resets the failure count."""
        for _ in range(2):
            with pytest.raises(ExternalServiceError):
                await circuit_breaker.call_async(failing_function)
        assert circuit_breaker.failure_count == 2

        result = await circuit_breaker.call_async(successful_function)
        assert result == {"success": True}
        assert circuit_breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_circuit_opens_after_failure_threshold(self, circuit_breaker, failing_function):
        """Test circuit opens after failure threshold is reached."""
        for _ in range(3):
            with pytest.raises(ExternalServiceError):
                await circuit_breaker.call_async(failing_function)

        assert circuit_breaker.state == CircuitState.OPEN
        assert circuit_breaker.failure_count == 3

        # Next call should be rejected immediately
        with pytest.raises(ServiceUnavailableError):
            await circuit_breaker.call_async(failing_function)

    @pytest.mark.asyncio
    async def test_circuit_closes_after_success_threshold(self, circuit_breaker, successful_function, failing_function):
        """Test circuit goes half-open after the timeout and closes on enough successes."""
        for _ in range(3):
            with pytest.raises(ExternalServiceError):
                await circuit_breaker.call_async(failing_function)
        assert circuit_breaker.state == CircuitState.OPEN

        time.sleep(1.1)  # Slightly longer than configured timeout

        await circuit_breaker.call_async(successful_function)
        assert circuit_breaker.state == CircuitState.HALF_OPEN

        await circuit_breaker.call_async(successful_function)
        assert circuit_breaker.state == CircuitState.CLOSED
        assert circuit_breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_half_open_failure_reopens(self, circuit_breaker, failing_function):
        for _ in range(3):
            with pytest.raises(ExternalServiceError):
                await circuit_breaker.call_async(failing_function)

        time.sleep(1.1)

        with pytest.raises(ExternalServiceError):
            await circuit_breaker.call_async(failing_function)
        assert circuit_breaker.state == CircuitState.OPEN
        assert circuit_breaker.metrics.circuit_open_count == 2

    @pytest.mark.asyncio
    async def test_get_status(self, circuit_breaker, successful_function):
        await circuit_breaker.call_async(successful_function)
        status = circuit_breaker.get_status()

        assert status["service"] == "Test Service"
        assert status["state"] == "closed"
        assert status["is_available"] is True
        assert status["metrics"]["total_calls"] == 1
        assert status["metrics"]["successful_calls"] == 1
        assert status["metrics"]["failure_rate"] == 0.0


class TestServiceClient:
    """Test service client with circuit breaker."""

    @staticmethod
    def make_client(handler, failure_threshold: int = 5) -> ServiceClient:
        client = ServiceClient(
            "Test Service",
            "http://test.local",
            timeout_seconds=1,
            circuit_breaker_config=CircuitBreakerConfig(failure_threshold=failure_threshold),
        )
        client.client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test.local")
        return client

    @pytest.mark.asyncio
    async def test_successful_get(self):
        client = self.make_client(lambda request: httpx.Response(200, json={"success": True}))
        assert await client.get("/thing") == {"success": True}

    @pytest.mark.asyncio
    async def test_non_json_success_body(self):
        client = self.make_client(lambda request: httpx.Response(200, text="ok"))
        assert await client.get("/thing") == {"data": "ok", "status_code": 200}

    @pytest.mark.asyncio
    async def test_structured_rejection_does_not_trip_circuit(self):
        """Test JSON error bodies are returned as payloads and count as healthy calls."""
        client = self.make_client(
            lambda request: httpx.Response(400, json={"error": "Voucher not found"}),
            failure_threshold=1,
        )

        result = await client.post("/api/redeem", json={})

        assert result == {"error": "Voucher not found", "success": False}
        assert client.circuit_breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_timeout_raises_timeout_error(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        client = self.make_client(handler)

        with pytest.raises(ExternalServiceTimeoutError):
            await client.get("/slow", timeout=0.2)

    @pytest.mark.asyncio
    async def test_open_circuit_surfaces_as_external_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = self.make_client(handler, failure_threshold=2)

        for _ in range(2):
            with pytest.raises(ExternalServiceError):
                await client.get("/down")
        assert client.circuit_breaker.state == CircuitState.OPEN

        with pytest.raises(ExternalServiceError) as exc_info:
            await client.get("/down")
        assert "Service unavailable" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_structured_server_error_raises_with_payload(self):
        """Test a 5xx JSON body raises, keeps the body and trips the circuit."""
        client = self.make_client(
            lambda request: httpx.Response(500, json={"success": False, "error": "could not detect network"}),
            failure_threshold=1,
        )

        with pytest.raises(ExternalServiceError) as exc_info:
            await client.get("/api/ens/resolve/alice.eth")

        assert exc_info.value.status_code == 500
        assert exc_info.value.payload == {"success": False, "error": "could not detect network"}
        assert client.circuit_breaker.state == CircuitState.OPEN
        assert client.circuit_breaker.metrics.failed_calls == 1

    @pytest.mark.asyncio
    async def test_plain_server_error_has_no_payload(self):
        client = self.make_client(lambda request: httpx.Response(503, text="down"))

        with pytest.raises(ExternalServiceError) as exc_info:
            await client.get("/thing")

        assert exc_info.value.status_code == 503
        assert exc_info.value.payload is None
