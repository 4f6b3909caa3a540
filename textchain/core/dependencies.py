"""
Dependency injection for FastAPI application.

Builds the command processor and its collaborators once per process from
the application settings.
"""
from functools import lru_cache
from typing import Optional, Tuple

from textchain.core.config import get_settings
from textchain.core.detached import DetachedCallRunner
from textchain.core.logging import get_logger
from textchain.database.base import AccountDirectory, ContactBook, DepositLedger
from textchain.database.memory import (
    InMemoryAccountDirectory,
    InMemoryContactBook,
    InMemoryDepositLedger,
)
from textchain.database.supabase_repository import (
    SupabaseAccountDirectory,
    SupabaseContactBook,
    SupabaseDepositLedger,
    create_supabase_client,
)
from textchain.services.cashout_service import CashoutServiceClient
from textchain.services.command_processor import CommandProcessor
from textchain.services.settlement_backend import SettlementBackendClient
from textchain.services.wallet_factory import WalletFactory

logger = get_logger(__name__)

Repositories = Tuple[Optional[AccountDirectory], Optional[ContactBook], Optional[DepositLedger]]


@lru_cache()
def get_repositories() -> Repositories:
    """
    Build the repositories selected by ``storage_backend``.

    Returns ``(None, None, None)`` when persistence is not configured; every
    account-dependent command then answers with its offline reply.
    """
    settings = get_settings()
    if not settings.persistence_configured:
        logger.warning("Persistence not configured", storage_backend=settings.storage_backend)
        return None, None, None

    if settings.storage_backend == "memory":
        return InMemoryAccountDirectory(), InMemoryContactBook(), InMemoryDepositLedger()

    try:
        client = create_supabase_client(settings.supabase_url, settings.supabase_key)
    except Exception as e:
        logger.error("Database connection failed, running without persistence", error=str(e))
        return None, None, None

    return SupabaseAccountDirectory(client), SupabaseContactBook(client), SupabaseDepositLedger(client)


@lru_cache()
def get_settlement_backend() -> SettlementBackendClient:
    """Get settlement backend client."""
    return SettlementBackendClient(get_settings())


@lru_cache()
def get_cashout_service() -> CashoutServiceClient:
    """Get cashout service client."""
    return CashoutServiceClient(get_settings())


@lru_cache()
def get_wallet_factory() -> WalletFactory:
    return WalletFactory(get_settings().wallet_encryption_secret)


@lru_cache()
def get_detached_runner() -> DetachedCallRunner:
    return DetachedCallRunner(default_timeout=get_settings().fire_and_forget_timeout_seconds)


@lru_cache()
def get_command_processor() -> CommandProcessor:
    """Get the process-wide command processor."""
    accounts, contacts, deposits = get_repositories()
    return CommandProcessor(
        accounts=accounts,
        contacts=contacts,
        deposits=deposits,
        backend=get_settlement_backend(),
        cashout=get_cashout_service(),
        wallets=get_wallet_factory(),
        detached=get_detached_runner(),
        settings=get_settings(),
    )
