"""
Tests for the in-memory repositories.
"""
from decimal import Decimal

import pytest

from textchain.core.exceptions import UnavailableError

PHONE = "+15550001111"


class TestAccountDirectory:

    @pytest.mark.asyncio
    async def test_create_and_find(self, accounts):
        created = await accounts.create(PHONE, "0xabc", "{}")
        found = await accounts.find_by_phone(PHONE)

        assert found is created
        assert found.alias is None

    @pytest.mark.asyncio
    async def test_create_is_idempotent(self, accounts):
        first = await accounts.create(PHONE, "0xabc", "{}")
        second = await accounts.create(PHONE, "0xdef", "{}")

        assert second is first
        assert second.wallet_address == "0xabc"

    @pytest.mark.asyncio
    async def test_updates(self, accounts):
        await accounts.create(PHONE, "0xabc", "{}")
        await accounts.update_alias(PHONE, "alice")
        await accounts.update_pin_hash(PHONE, "hash")

        account = await accounts.find_by_phone(PHONE)
        assert account.alias == "alice"
        assert account.pin_hash == "hash"

    @pytest.mark.asyncio
    async def test_offline(self, accounts):
        accounts.offline = True
        with pytest.raises(UnavailableError) as exc_info:
            await accounts.find_by_phone(PHONE)
        assert exc_info.value.reply == "DB offline. Try later."


class TestContactBook:

    @pytest.mark.asyncio
    async def test_saving_same_name_replaces(self, contacts):
        await contacts.add(PHONE, "Mom", phone="+15551111111")
        await contacts.add(PHONE, "mom", phone="+15552222222")

        matches = await contacts.find_by_name(PHONE, "MOM")
        assert len(matches) == 1
        assert matches[0].phone_number == "+15552222222"

    @pytest.mark.asyncio
    async def test_list_is_sorted_and_scoped(self, contacts):
        await contacts.add(PHONE, "zed", phone="+15551111111")
        await contacts.add(PHONE, "Amy", address="0x" + "ab" * 20)
        await contacts.add("+15559999999", "other", phone="+15553333333")

        names = [c.name for c in await contacts.list(PHONE)]
        assert names == ["Amy", "zed"]

    @pytest.mark.asyncio
    async def test_offline(self, contacts):
        contacts.offline = True
        with pytest.raises(UnavailableError) as exc_info:
            await contacts.list(PHONE)
        assert exc_info.value.reply == "Address book offline."


class TestDepositLedger:

    @pytest.mark.asyncio
    async def test_recent_is_newest_first_and_limited(self, deposits):
        for amount in ("1", "2", "3"):
            await deposits.record(PHONE, Decimal(amount), "voucher")

        recent = await deposits.recent(PHONE, 2)
        assert [d.amount for d in recent] == [Decimal("3"), Decimal("2")]

    @pytest.mark.asyncio
    async def test_unknown_phone(self, deposits):
        assert await deposits.recent(PHONE, 5) == []
