"""
Settlement backend client.

The backend owns balances, transfers, swaps, voucher redemption, airtime
purchases, bridging and the name service. Every method returns a
``DownstreamOutcome``; transport failures are folded into the outcome
rather than raised so callers only ever deal with one result shape.
"""
from decimal import Decimal
from typing import Any, Awaitable, Dict, Optional
from urllib.parse import quote

import structlog

from textchain.core.circuit_breaker import CircuitBreakerConfig, ServiceClient
from textchain.core.config import Settings, get_settings
from textchain.core.exceptions import ExternalServiceError, ExternalServiceTimeoutError
from textchain.models.outcomes import DownstreamOutcome

logger = structlog.get_logger(__name__)


async def collect_outcome(operation: str, call: Awaitable[Dict[str, Any]]) -> DownstreamOutcome:
    """
    Await a ServiceClient call and collapse its result into an outcome.

    4xx responses without a structured body are explicit rejections. A 5xx
    response with a structured body becomes a ``server_error`` outcome that
    keeps the collaborator's message. Every other transport error means the
    collaborator could not be reached.
    """
    try:
        payload = await call
    except ExternalServiceTimeoutError as e:
        logger.warning("Downstream call timed out", operation=operation, error=str(e))
        return DownstreamOutcome.timed_out(str(e))
    except ExternalServiceError as e:
        if e.status_code is not None and 400 <= e.status_code < 500:
            logger.info("Downstream call rejected", operation=operation, status_code=e.status_code)
            return DownstreamOutcome(success=False, message=str(e))
        if e.payload is not None:
            message = str(e.payload.get("error") or e)
            logger.warning(
                "Downstream call errored",
                operation=operation,
                status_code=e.status_code,
                downstream_error=message,
            )
            return DownstreamOutcome.server_error(e.payload, message)
        logger.warning("Downstream call failed", operation=operation, error=str(e))
        return DownstreamOutcome.unavailable(str(e))

    outcome = DownstreamOutcome.from_payload(payload)
    logger.info(
        "Downstream call completed",
        operation=operation,
        success=outcome.success,
        downstream_error=outcome.message,
    )
    return outcome


class SettlementBackendClient:
    """Client for the settlement backend HTTP API."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        service_client: Optional[ServiceClient] = None,
    ):
        self.settings = settings or get_settings()
        self.service_name = "Settlement Backend"

        if service_client is None:
            circuit_config = CircuitBreakerConfig(
                failure_threshold=self.settings.circuit_breaker_failure_threshold,
                timeout=self.settings.circuit_breaker_timeout_seconds,
            )
            service_client = ServiceClient(
                service_name=self.service_name,
                base_url=self.settings.settlement_backend_url,
                timeout_seconds=self.settings.settlement_timeout_seconds,
                circuit_breaker_config=circuit_config,
            )
        self.service_client = service_client

    async def get_balance(self, address: str) -> DownstreamOutcome:
        """Balances for ``address`` as ``{"balances": {"txtc": ..., "eth": ...}}``."""
        return await collect_outcome(
            "balance",
            self.service_client.get(f"/api/balance/{address}"),
        )

    async def send(
        self,
        from_address: str,
        to_address: str,
        amount: Decimal,
        token: str,
        sender_key: str,
    ) -> DownstreamOutcome:
        """
        Transfer through the instant-finality network.

        The sender's phone is deliberately left out of the request so the
        backend does not text its own confirmation on top of our reply.
        """
        payload = {
            "fromAddress": from_address,
            "toAddress": to_address,
            "amount": str(amount),
            "token": token,
            "senderKey": sender_key,
        }
        return await collect_outcome("send", self.service_client.post("/api/send-yellow", json=payload))

    async def redeem(self, code: str, user_address: str) -> DownstreamOutcome:
        payload = {"voucherCode": code, "userAddress": user_address}
        return await collect_outcome("redeem", self.service_client.post("/api/redeem", json=payload))

    async def swap(
        self,
        user_address: str,
        amount: Decimal,
        user_phone: str,
        timeout: Optional[float] = None,
    ) -> DownstreamOutcome:
        payload = {
            "userAddress": user_address,
            "tokenAmount": str(amount),
            "minEthOut": "0",
            "userPhone": user_phone,
        }
        return await collect_outcome(
            "swap",
            self.service_client.post("/api/swap", json=payload, timeout=timeout),
        )

    async def buy(
        self,
        user_address: str,
        amount: Decimal,
        user_phone: str,
        timeout: Optional[float] = None,
    ) -> DownstreamOutcome:
        """Convert airtime credit into TXTC."""
        payload = {"userAddress": user_address, "amount": str(amount), "userPhone": user_phone}
        return await collect_outcome(
            "buy",
            self.service_client.post("/api/buy", json=payload, timeout=timeout),
        )

    async def bridge(
        self,
        user_address: str,
        amount: Decimal,
        token: str,
        from_chain: str,
        to_chain: str,
        user_phone: str,
        timeout: Optional[float] = None,
    ) -> DownstreamOutcome:
        payload = {
            "userAddress": user_address,
            "amount": str(amount),
            "token": token,
            "fromChain": from_chain,
            "toChain": to_chain,
            "userPhone": user_phone,
        }
        return await collect_outcome(
            "bridge",
            self.service_client.post("/api/bridge", json=payload, timeout=timeout),
        )

    # Name service

    async def check_name(self, name: str) -> DownstreamOutcome:
        """Whether ``name`` can still be registered (``{"available": bool}``)."""
        return await collect_outcome(
            "name_check",
            self.service_client.get(
                f"/api/ens/check/{quote(name.lower())}",
                timeout=self.settings.name_service_timeout_seconds,
            ),
        )

    async def register_name(self, name: str, wallet_address: str) -> DownstreamOutcome:
        payload = {"ensName": name.lower(), "walletAddress": wallet_address}
        return await collect_outcome(
            "name_register",
            self.service_client.post(
                "/api/ens/register",
                json=payload,
                timeout=self.settings.name_service_timeout_seconds,
            ),
        )

    async def resolve_name(self, name: str) -> DownstreamOutcome:
        """Address registered for a dotted name (``{"address": "0x..."}``)."""
        return await collect_outcome(
            "name_resolve",
            self.service_client.get(
                f"/api/ens/resolve/{quote(name.lower())}",
                timeout=self.settings.name_service_timeout_seconds,
            ),
        )

    async def close(self) -> None:
        await self.service_client.close()

    def get_circuit_status(self) -> Dict[str, Any]:
        return self.service_client.get_circuit_status()
