"""
Circuit breaker implementation for external service calls.
"""
import time
from enum import Enum
from typing import Callable, Any, Dict, Optional
from dataclasses import dataclass
import structlog
import httpx
from textchain.core.exceptions import (
    ServiceUnavailableError,
    ExternalServiceError,
    ExternalServiceTimeoutError,
)

logger = structlog.get_logger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker."""

    failure_threshold: int = 5
    success_threshold: int = 3
    timeout: int = 60
    half_open_max_calls: int = 5


@dataclass
class CircuitBreakerMetrics:
    """Call counters reported by the dependencies health endpoint."""

    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    circuit_open_count: int = 0

    @property
    def failure_rate(self) -> float:
        return self.failed_calls / self.total_calls if self.total_calls else 0.0


class CircuitBreaker:
    """
    Trips after ``failure_threshold`` consecutive raised errors and rejects
    calls until ``timeout`` seconds pass. A half-open circuit lets a bounded
    number of trial calls through; ``success_threshold`` successes close it
    and any failure opens it again.
    """

    def __init__(
        self,
        service_name: str = "Unknown Service",
        config: Optional[CircuitBreakerConfig] = None,
    ):
        self.service_name = service_name
        self.config = config or CircuitBreakerConfig()

        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.success_count = 0
        self.half_open_calls = 0
        self.last_failure_time: Optional[float] = None
        self.metrics = CircuitBreakerMetrics()

    def __call__(self, func: Callable) -> Callable:
        """Decorator to wrap functions with circuit breaker."""

        async def wrapper(*args, **kwargs) -> Any:
            return await self.call_async(func, *args, **kwargs)

        return wrapper

    async def call_async(self, func: Callable, *args, **kwargs) -> Any:
        """Execute async function with circuit breaker protection."""
        self._admit()
        try:
            result = await func(*args, **kwargs)
        except Exception:
            self._record_failure()
            raise
        self._record_success()
        return result

    def _admit(self) -> None:
        if self.state == CircuitState.OPEN:
            elapsed = time.time() - (self.last_failure_time or 0)
            if elapsed < self.config.timeout:
                logger.warning(
                    "Circuit breaker rejecting call - OPEN state",
                    service=self.service_name,
                    failure_count=self.failure_count,
                )
                raise ServiceUnavailableError(
                    self.service_name,
                    f"Circuit breaker is OPEN for {self.service_name}",
                )
            self.state = CircuitState.HALF_OPEN
            self.half_open_calls = 0
            self.success_count = 0
            logger.info("Circuit breaker transitioning to half-open", service=self.service_name)

        if self.state == CircuitState.HALF_OPEN:
            if self.half_open_calls >= self.config.half_open_max_calls:
                raise ServiceUnavailableError(
                    self.service_name,
                    f"Circuit breaker half-open limit reached for {self.service_name}",
                )
            self.half_open_calls += 1

    def _record_success(self) -> None:
        self.metrics.total_calls += 1
        self.metrics.successful_calls += 1

        if self.state != CircuitState.HALF_OPEN:
            self.failure_count = 0
            return
        self.success_count += 1
        if self.success_count >= self.config.success_threshold:
            self.state = CircuitState.CLOSED
            self.failure_count = 0
            self.success_count = 0
            logger.info("Circuit breaker reset to closed", service=self.service_name)

    def _record_failure(self) -> None:
        self.metrics.total_calls += 1
        self.metrics.failed_calls += 1
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == CircuitState.HALF_OPEN or self.failure_count >= self.config.failure_threshold:
            self.state = CircuitState.OPEN
            self.metrics.circuit_open_count += 1
            logger.warning(
                "Circuit breaker opened",
                service=self.service_name,
                failure_count=self.failure_count,
                threshold=self.config.failure_threshold,
            )

    def get_status(self) -> dict[str, Any]:
        """Get current circuit breaker status."""
        return {
            "service": self.service_name,
            "state": self.state.value,
            "failure_count": self.failure_count,
            "success_count": self.success_count,
            "failure_threshold": self.config.failure_threshold,
            "is_available": self.state != CircuitState.OPEN,
            "last_failure_time": self.last_failure_time,
            "metrics": {
                "total_calls": self.metrics.total_calls,
                "successful_calls": self.metrics.successful_calls,
                "failed_calls": self.metrics.failed_calls,
                "failure_rate": round(self.metrics.failure_rate, 4),
                "circuit_open_count": self.metrics.circuit_open_count,
            },
        }


class ServiceClient:
    """
    HTTP service client with circuit breaker protection.

    Downstream services in this system report failures as JSON bodies of
    the form ``{"success": false, "error": "..."}``. A 4xx body is returned
    to the caller as an ordinary payload. A 5xx body raises
    ``ExternalServiceError`` carrying the parsed payload, so it counts
    against the circuit while the caller can still read the message.
    """

    def __init__(
        self,
        service_name: str,
        base_url: str,
        timeout_seconds: float = 30,
        circuit_breaker_config: Optional[CircuitBreakerConfig] = None
    ):
        """
        Initialize service client.

        Args:
            service_name: Name of the service for logging
            base_url: Base URL for the service
            timeout_seconds: Default request timeout in seconds
            circuit_breaker_config: Optional circuit breaker configuration
        """
        self.service_name = service_name
        self.base_url = base_url.rstrip('/')
        self.timeout_seconds = timeout_seconds

        config = circuit_breaker_config or CircuitBreakerConfig()
        self.circuit_breaker = CircuitBreaker(
            service_name=service_name,
            config=config
        )

        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout_seconds
        )

        logger.info(
            "Service client initialized",
            service_name=service_name,
            base_url=self.base_url,
            timeout_seconds=timeout_seconds
        )

    async def get(self, endpoint: str, **kwargs) -> Dict[str, Any]:
        """Make GET request with circuit breaker protection."""
        return await self._make_request("GET", endpoint, **kwargs)

    async def post(self, endpoint: str, **kwargs) -> Dict[str, Any]:
        """Make POST request with circuit breaker protection."""
        return await self._make_request("POST", endpoint, **kwargs)

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        timeout: Optional[float] = None,
        **kwargs
    ) -> Dict[str, Any]:
        """
        Make HTTP request with circuit breaker protection.

        Args:
            method: HTTP method
            endpoint: API endpoint
            timeout: Per-call timeout overriding the client default
            **kwargs: Additional request parameters

        Returns:
            Response data as dictionary

        Raises:
            ExternalServiceTimeoutError: If the call exceeds its timeout
            ExternalServiceError: If the request fails for any other reason
        """
        effective_timeout = timeout if timeout is not None else self.timeout_seconds

        @self.circuit_breaker
        async def protected_request():
            url = f"{self.base_url}/{endpoint.lstrip('/')}"

            try:
                response = await self.client.request(
                    method, url, timeout=effective_timeout, **kwargs
                )
                response.raise_for_status()

                try:
                    return response.json()
                except ValueError:
                    return {"data": response.text, "status_code": response.status_code}

            except httpx.TimeoutException as e:
                logger.error(
                    "Timeout in service call",
                    service_name=self.service_name,
                    method=method,
                    endpoint=endpoint,
                    timeout=effective_timeout,
                    error=str(e)
                )
                raise ExternalServiceTimeoutError(
                    service_name=self.service_name,
                    timeout_seconds=effective_timeout,
                )
            except httpx.HTTPStatusError as e:
                status_code = e.response.status_code
                payload = _rejection_payload(e.response)
                if payload is not None and status_code < 500:
                    logger.info(
                        "Service reported rejection",
                        service_name=self.service_name,
                        method=method,
                        endpoint=endpoint,
                        status_code=status_code,
                    )
                    return payload

                logger.error(
                    "HTTP error in service call",
                    service_name=self.service_name,
                    method=method,
                    endpoint=endpoint,
                    status_code=status_code,
                    error=str(e)
                )
                raise ExternalServiceError(
                    service_name=self.service_name,
                    message=f"HTTP {status_code}",
                    status_code=status_code,
                    payload=payload,
                )
            except httpx.RequestError as e:
                logger.error(
                    "Request error in service call",
                    service_name=self.service_name,
                    method=method,
                    endpoint=endpoint,
                    error=str(e)
                )
                raise ExternalServiceError(
                    service_name=self.service_name,
                    message=f"Request failed: {str(e)}"
                )

        try:
            return await protected_request()
        except ServiceUnavailableError as e:
            raise ExternalServiceError(
                service_name=self.service_name,
                message=f"Service unavailable: {e.detail}"
            )

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    def get_circuit_status(self) -> Dict[str, Any]:
        """Get circuit breaker status."""
        return self.circuit_breaker.get_status()


def _rejection_payload(response: httpx.Response) -> Optional[Dict[str, Any]]:
    """Return the JSON body of an error response when it is a structured rejection."""
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and ("success" in body or "error" in body):
        body.setdefault("success", False)
        return body
    return None
