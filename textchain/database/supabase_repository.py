"""Repositories backed by Supabase tables."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from supabase import Client, create_client

from textchain.core.exceptions import UnavailableError
from textchain.core.logging import get_logger
from textchain.database.base import (
    CONTACTS_OFFLINE,
    DIRECTORY_OFFLINE,
    LEDGER_OFFLINE,
    AccountDirectory,
    ContactBook,
    DepositLedger,
)
from textchain.models.domain import Contact, Deposit, UserAccount
from textchain.utils.formatting import to_decimal

logger = get_logger(__name__)

USERS_TABLE = "users"
ADDRESS_BOOK_TABLE = "address_book"
DEPOSITS_TABLE = "deposits"


def create_supabase_client(url: str, key: str) -> Client:
    """Build the shared Supabase client."""
    return create_client(str(url), key)


def _account_from_row(row: Dict[str, Any]) -> UserAccount:
    return UserAccount(
        phone_number=row["phone_number"],
        wallet_address=row["wallet_address"],
        encrypted_private_key=row.get("encrypted_private_key") or "",
        alias=row.get("ens_name"),
        pin_hash=row.get("pin_hash"),
    )


def _contact_from_row(row: Dict[str, Any]) -> Contact:
    return Contact(
        owner_phone=row["owner_phone"],
        name=row["name"],
        phone_number=row.get("phone_number"),
        wallet_address=row.get("wallet_address"),
    )


def _deposit_from_row(row: Dict[str, Any]) -> Deposit:
    return Deposit(
        phone_number=row["phone_number"],
        amount=to_decimal(row.get("amount")) or Decimal(0),
        source=row.get("source") or "unknown",
        tx_hash=row.get("tx_hash"),
    )


class SupabaseAccountDirectory(AccountDirectory):
    """Accounts stored in the ``users`` table (unique on ``phone_number``)."""

    def __init__(self, client: Client):
        self.client = client

    async def find_by_phone(self, phone: str) -> Optional[UserAccount]:
        try:
            response = self.client.table(USERS_TABLE).select('*').eq('phone_number', phone).limit(1).execute()
        except Exception as e:
            logger.error("Failed to look up account", error=str(e))
            raise UnavailableError("account_directory", DIRECTORY_OFFLINE, detail=str(e))
        return _account_from_row(response.data[0]) if response.data else None

    async def create(self, phone: str, address: str, encrypted_key: str) -> UserAccount:
        existing = await self.find_by_phone(phone)
        if existing is not None:
            return existing

        row = {
            "phone_number": phone,
            "wallet_address": address,
            "encrypted_private_key": encrypted_key,
            "created_at": datetime.utcnow().isoformat(),
        }
        try:
            response = self.client.table(USERS_TABLE).insert(row).execute()
        except Exception as e:
            # A concurrent JOIN may have won the unique constraint
            winner = await self.find_by_phone(phone)
            if winner is not None:
                logger.info("Account created concurrently, returning existing", wallet_address=winner.wallet_address)
                return winner
            logger.error("Failed to create account", error=str(e))
            raise UnavailableError("account_directory", DIRECTORY_OFFLINE, detail=str(e))

        return _account_from_row(response.data[0]) if response.data else _account_from_row(row)

    async def update_alias(self, phone: str, alias: str) -> None:
        self._update(phone, {"ens_name": alias}, "alias")

    async def update_pin_hash(self, phone: str, pin_hash: str) -> None:
        self._update(phone, {"pin_hash": pin_hash}, "PIN")

    def _update(self, phone: str, update_data: Dict[str, Any], field: str) -> None:
        try:
            update_data["updated_at"] = datetime.utcnow().isoformat()
            self.client.table(USERS_TABLE).update(update_data).eq('phone_number', phone).execute()
        except Exception as e:
            logger.error("Failed to update account", field=field, error=str(e))
            raise UnavailableError("account_directory", DIRECTORY_OFFLINE, detail=str(e))


class SupabaseContactBook(ContactBook):
    """Contacts stored in the ``address_book`` table."""

    def __init__(self, client: Client):
        self.client = client

    async def add(
        self,
        owner_phone: str,
        name: str,
        phone: Optional[str] = None,
        address: Optional[str] = None,
    ) -> Contact:
        row = {
            "owner_phone": owner_phone,
            "name": name,
            "phone_number": phone,
            "wallet_address": address,
        }
        try:
            response = self.client.table(ADDRESS_BOOK_TABLE).upsert(row, on_conflict="owner_phone,name").execute()
        except Exception as e:
            logger.error("Failed to save contact", error=str(e))
            raise UnavailableError("contact_book", CONTACTS_OFFLINE, detail=str(e))
        return _contact_from_row(response.data[0]) if response.data else _contact_from_row(row)

    async def list(self, owner_phone: str) -> List[Contact]:
        try:
            response = self.client.table(ADDRESS_BOOK_TABLE).select('*').eq('owner_phone', owner_phone).order('name').execute()
        except Exception as e:
            logger.error("Failed to list contacts", error=str(e))
            raise UnavailableError("contact_book", CONTACTS_OFFLINE, detail=str(e))
        return [_contact_from_row(row) for row in response.data or []]

    async def find_by_name(self, owner_phone: str, name: str) -> List[Contact]:
        try:
            response = self.client.table(ADDRESS_BOOK_TABLE).select('*').eq('owner_phone', owner_phone).ilike('name', name).execute()
        except Exception as e:
            logger.error("Failed to look up contact", error=str(e))
            raise UnavailableError("contact_book", CONTACTS_OFFLINE, detail=str(e))
        # ilike treats "_" as a wildcard
        contacts = [_contact_from_row(row) for row in response.data or []]
        return [c for c in contacts if c.name.lower() == name.lower()]


class SupabaseDepositLedger(DepositLedger):
    """Deposits stored in the ``deposits`` table."""

    def __init__(self, client: Client):
        self.client = client

    async def recent(self, phone: str, limit: int) -> List[Deposit]:
        try:
            response = (
                self.client.table(DEPOSITS_TABLE)
                .select('*')
                .eq('phone_number', phone)
                .order('created_at', desc=True)
                .limit(limit)
                .execute()
            )
        except Exception as e:
            logger.error("Failed to load deposits", error=str(e))
            raise UnavailableError("deposit_ledger", LEDGER_OFFLINE, detail=str(e))
        return [_deposit_from_row(row) for row in response.data or []]

    async def record(
        self,
        phone: str,
        amount: Decimal,
        source: str,
        tx_hash: Optional[str] = None,
    ) -> Deposit:
        row = {
            "phone_number": phone,
            "amount": str(amount),
            "source": source,
            "tx_hash": tx_hash,
            "created_at": datetime.utcnow().isoformat(),
        }
        try:
            self.client.table(DEPOSITS_TABLE).insert(row).execute()
        except Exception as e:
            logger.error("Failed to record deposit", source=source, error=str(e))
            raise UnavailableError("deposit_ledger", LEDGER_OFFLINE, detail=str(e))
        return Deposit(phone_number=phone, amount=amount, source=source, tx_hash=tx_hash)
