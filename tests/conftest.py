"""
Pytest configuration and fixtures for the TextChain SMS gateway.
"""
from typing import Generator
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from textchain.core.config import Settings
from textchain.core.detached import DetachedCallRunner
from textchain.database.memory import (
    InMemoryAccountDirectory,
    InMemoryContactBook,
    InMemoryDepositLedger,
)
from textchain.models.domain import UserAccount
from textchain.models.outcomes import DownstreamOutcome
from textchain.services.cashout_service import CashoutServiceClient
from textchain.services.command_processor import CommandProcessor
from textchain.services.settlement_backend import SettlementBackendClient
from textchain.services.wallet_factory import WalletFactory

PRINCIPAL = "+15550001111"
OTHER_PHONE = "+15550002222"
OTHER_ADDRESS = "0x" + "ab" * 20
NAMED_ADDRESS = "0x" + "cd" * 20


@pytest.fixture
def test_settings() -> Settings:
    """Settings with in-memory storage and short detached-call timeouts."""
    return Settings(
        storage_backend="memory",
        wallet_encryption_secret="test-wallet-secret",
        fire_and_forget_timeout_seconds=0.1,
        network_label="Sepolia testnet",
        name_suffix="ttcip.eth",
    )


@pytest.fixture
def wallet_factory() -> WalletFactory:
    """Wallet factory with cheap argon2 parameters."""
    return WalletFactory("test-wallet-secret", time_cost=1, memory_cost=1024, parallelism=1)


@pytest.fixture
def accounts() -> InMemoryAccountDirectory:
    return InMemoryAccountDirectory()


@pytest.fixture
def contacts() -> InMemoryContactBook:
    return InMemoryContactBook()


@pytest.fixture
def deposits() -> InMemoryDepositLedger:
    return InMemoryDepositLedger()


@pytest.fixture
def backend() -> MagicMock:
    """Settlement backend double; every call succeeds with an empty payload by default."""
    backend = MagicMock(spec=SettlementBackendClient)
    for name in (
        "get_balance",
        "send",
        "redeem",
        "swap",
        "buy",
        "bridge",
        "check_name",
        "register_name",
        "resolve_name",
    ):
        setattr(backend, name, AsyncMock(return_value=DownstreamOutcome(success=True, payload={"success": True})))
    return backend


@pytest.fixture
def cashout() -> MagicMock:
    cashout = MagicMock(spec=CashoutServiceClient)
    cashout.cashout = AsyncMock(return_value=DownstreamOutcome(success=True, payload={"success": True}))
    return cashout


@pytest.fixture
def detached_runner() -> DetachedCallRunner:
    return DetachedCallRunner(default_timeout=0.1)


@pytest.fixture
def processor(
    accounts, contacts, deposits, backend, cashout, wallet_factory, detached_runner, test_settings
) -> CommandProcessor:
    """Command processor wired to in-memory repositories and mocked downstreams."""
    return CommandProcessor(
        accounts=accounts,
        contacts=contacts,
        deposits=deposits,
        backend=backend,
        cashout=cashout,
        wallets=wallet_factory,
        detached=detached_runner,
        settings=test_settings,
    )


@pytest.fixture
def registered(accounts, wallet_factory) -> UserAccount:
    """An existing account for PRINCIPAL."""
    wallet = wallet_factory.create_wallet()
    account = UserAccount(
        phone_number=PRINCIPAL,
        wallet_address=wallet.address,
        encrypted_private_key=wallet.encrypted_private_key,
    )
    accounts.accounts[PRINCIPAL] = account
    return account


@pytest.fixture
def other_account(accounts) -> UserAccount:
    """An existing account for OTHER_PHONE."""
    account = UserAccount(
        phone_number=OTHER_PHONE,
        wallet_address=OTHER_ADDRESS,
        encrypted_private_key="{}",
    )
    accounts.accounts[OTHER_PHONE] = account
    return account


@pytest.fixture
def client(processor) -> Generator[TestClient, None, None]:
    """
    Create a test client for the FastAPI application.

    The command processor dependency is replaced by the in-memory one.
    """
    from textchain.core.dependencies import get_command_processor
    from textchain.main import app

    app.dependency_overrides[get_command_processor] = lambda: processor
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def sample_headers() -> dict:
    """Sample request headers with correlation ID."""
    return {
        "X-Correlation-ID": "test-correlation-123",
        "Content-Type": "application/json",
    }


@pytest.fixture
def api_prefix() -> str:
    """Get the API prefix from settings."""
    from textchain.core.config import settings

    return settings.api_prefix
