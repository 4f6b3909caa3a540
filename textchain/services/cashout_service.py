"""Client for the stablecoin cashout service."""

from decimal import Decimal
from typing import Any, Dict, Optional

from textchain.core.circuit_breaker import CircuitBreakerConfig, ServiceClient
from textchain.core.config import Settings, get_settings
from textchain.models.outcomes import DownstreamOutcome
from textchain.services.settlement_backend import collect_outcome


class CashoutServiceClient:
    """Converts TXTC or ETH into USDC and reports completion by SMS itself."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        service_client: Optional[ServiceClient] = None,
    ):
        self.settings = settings or get_settings()
        self.service_name = "Cashout Service"

        if service_client is None:
            circuit_config = CircuitBreakerConfig(
                failure_threshold=self.settings.circuit_breaker_failure_threshold,
                timeout=self.settings.circuit_breaker_timeout_seconds,
            )
            service_client = ServiceClient(
                service_name=self.service_name,
                base_url=self.settings.cashout_service_url,
                timeout_seconds=self.settings.cashout_timeout_seconds,
                circuit_breaker_config=circuit_config,
            )
        self.service_client = service_client

    async def cashout(
        self,
        phone: str,
        user_address: str,
        amount: Decimal,
        token: str,
        timeout: Optional[float] = None,
    ) -> DownstreamOutcome:
        """
        Request a cashout.

        Args:
            phone: Principal to notify on completion
            user_address: Wallet the funds are taken from
            amount: Amount of ``token`` to convert
            token: TXTC or ETH
            timeout: Per-call timeout overriding the client default

        Returns:
            Outcome of the request (not of the cashout itself)
        """
        payload = {
            "phone": phone,
            "userAddress": user_address,
            "txtcAmount": str(amount),
            "token": token,
        }
        return await collect_outcome(
            "cashout",
            self.service_client.post("/api/arc/cashout", json=payload, timeout=timeout),
        )

    async def close(self) -> None:
        await self.service_client.close()

    def get_circuit_status(self) -> Dict[str, Any]:
        return self.service_client.get_circuit_status()
