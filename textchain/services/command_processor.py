"""
Command processor.

Every inbound message goes through the same steps: parse, validate the
arguments, check the account preconditions, resolve any recipient, then
dispatch to the collaborator that owns the operation. Handlers either
return the reply or raise a ``CommandError`` carrying it; ``process``
always produces exactly one reply string.

Swaps, cashouts, bridges and airtime purchases are fire-and-forget: the
request is issued as a detached call and the user is told to expect an
SMS, which the downstream service sends once the operation settles.
"""
import asyncio
import re
from decimal import Decimal
from typing import Awaitable, Callable, Dict, Optional, Tuple, Type

import structlog

from textchain.core.config import Settings, get_settings
from textchain.core.detached import DetachedCallRunner
from textchain.core.exceptions import (
    CommandError,
    DownstreamRejection,
    NotFoundError,
    ResolutionError,
    UnavailableError,
    ValidationError,
)
from textchain.core.logging import correlation_context, log_business_event
from textchain.database.base import (
    CONTACTS_OFFLINE,
    DIRECTORY_OFFLINE,
    LEDGER_OFFLINE,
    AccountDirectory,
    ContactBook,
    DepositLedger,
)
from textchain.models.chains import Chain, available_chains, find_chain
from textchain.models.commands import (
    Balance,
    Bridge,
    Buy,
    Cashout,
    Command,
    Deposit,
    Help,
    History,
    Join,
    ListContacts,
    Redeem,
    SaveContact,
    Send,
    SetPin,
    Swap,
    SwitchChain,
    Unrecognized,
)
from textchain.models.domain import UserAccount
from textchain.models.outcomes import DownstreamOutcome
from textchain.services.cashout_service import CashoutServiceClient
from textchain.services.recipient_resolver import ALIAS_PATTERN, RecipientResolver, normalize_phone
from textchain.services.settlement_backend import SettlementBackendClient
from textchain.services.wallet_factory import WalletFactory
from textchain.utils.command_parser import parse
from textchain.utils.formatting import format_amount, format_usd, to_decimal
from textchain.utils.response_normalizer import Action, ResponseNormalizer

logger = structlog.get_logger(__name__)

HELP_TEXT = (
    "TextChain Commands:\n"
    "JOIN [name] - Create wallet\n"
    "BALANCE - Check balance\n"
    "SEND <amt> <token> TO <phone> - Send tokens\n"
    "SWAP <amt> TXTC - Swap for ETH\n"
    "CASHOUT <amt> <token> - Cash out to USDC\n"
    "BUY <amt> - Buy TXTC with airtime\n"
    "BRIDGE <amt> <token> FROM <chain> TO <chain>\n"
    "REDEEM <code> - Redeem voucher\n"
    "DEPOSIT - Get deposit address\n"
    "HISTORY - Recent transactions\n"
    "SAVE <name> <phone> - Save contact\n"
    "CONTACTS - List contacts\n"
    "CHAIN <name> - Switch network\n"
    "PIN <code> - Set PIN"
)

NO_WALLET = "No wallet. Reply JOIN first."
GENERIC_ERROR = "Error. Try later."
WELCOME = "Welcome to TextChain!\n\nReply HELP for commands."
ALIAS_RULE = "Name must be 3-20 letters or numbers.\nExample: JOIN alice"
PIN_PROMPT = "Reply: PIN <4-6 digits>\nExample: PIN 1234"
PIN_RULE = "PIN must be 4-6 digits.\nExample: PIN 1234"
AMOUNT_RULE = "Amount must be greater than 0."
SELF_SEND = "You can't send to yourself."
CONTACT_NAME_RULE = "Contact name must be letters or numbers."
CONTACT_PHONE_RULE = "Invalid phone. Use +<country code><number>"
NAME_OFFLINE_NOTE = "Name registration offline."
ASYNC_FOOTER = "You'll get an SMS when complete."

JOIN_ALIAS_PATTERN = re.compile(r"^[A-Za-z0-9]{3,20}$")
PIN_PATTERN = re.compile(r"^[0-9]{4,6}$")
CONTACT_PHONE_PATTERN = re.compile(r"^\+[0-9]{8,15}$")

TRANSFER_TOKENS = ("TXTC", "ETH")
SWAP_TOKENS = ("TXTC",)
CASHOUT_TOKENS = ("TXTC", "ETH")

Handler = Callable[[str, Command], Awaitable[str]]


class CommandProcessor:
    """Turns one inbound SMS into exactly one reply."""

    def __init__(
        self,
        accounts: Optional[AccountDirectory],
        contacts: Optional[ContactBook],
        deposits: Optional[DepositLedger],
        backend: SettlementBackendClient,
        cashout: CashoutServiceClient,
        wallets: WalletFactory,
        detached: Optional[DetachedCallRunner] = None,
        settings: Optional[Settings] = None,
        resolver: Optional[RecipientResolver] = None,
        normalizer: Optional[ResponseNormalizer] = None,
    ):
        self.settings = settings or get_settings()
        self.accounts = accounts
        self.contacts = contacts
        self.deposits = deposits
        self.backend = backend
        self.cashout = cashout
        self.wallets = wallets
        self.detached = detached or DetachedCallRunner(
            default_timeout=self.settings.fire_and_forget_timeout_seconds
        )
        self.resolver = resolver or RecipientResolver(accounts, contacts, backend)
        self.normalizer = normalizer or ResponseNormalizer()

        self._handlers: Dict[Type[Command], Handler] = {
            Help: self._help,
            Join: self._join,
            Balance: self._balance,
            SetPin: self._set_pin,
            Send: self._send,
            Deposit: self._deposit,
            History: self._history,
            Redeem: self._redeem,
            Swap: self._swap,
            Cashout: self._cashout,
            Buy: self._buy,
            Bridge: self._bridge,
            SaveContact: self._save_contact,
            ListContacts: self._list_contacts,
            SwitchChain: self._switch_chain,
            Unrecognized: self._unrecognized,
        }

    async def process(self, principal: str, text: Optional[str]) -> str:
        """
        Handle one inbound message.

        Args:
            principal: Sender phone number
            text: Message body as received

        Returns:
            The reply to send back; never raises
        """
        _, reply = await self.handle(principal, text)
        return reply

    async def handle(self, principal: str, text: Optional[str]) -> Tuple[Command, str]:
        """Like ``process`` but also returns the parsed command."""
        with correlation_context(principal=principal):
            command = parse(text)
            logger.info("Inbound command", command=command.kind)
            return command, await self.execute(principal, command)

    async def execute(self, principal: str, command: Command) -> str:
        """Run an already parsed command and return its reply."""
        handler = self._handlers.get(type(command))
        if handler is None:
            logger.error("No handler registered", command=command.kind)
            return GENERIC_ERROR

        try:
            reply = await handler(principal, command)
        except CommandError as e:
            logger.info(
                "Command answered with error reply",
                command=command.kind,
                error_kind=e.kind,
                detail=str(e),
            )
            return e.reply
        except Exception as e:
            logger.exception(
                "Unexpected error handling command",
                command=command.kind,
                error_type=type(e).__name__,
            )
            return GENERIC_ERROR

        logger.info("Command handled", command=command.kind)
        return reply

    # Preconditions

    def _directory(self) -> AccountDirectory:
        if self.accounts is None:
            raise UnavailableError("account_directory", DIRECTORY_OFFLINE, detail="persistence not configured")
        return self.accounts

    async def _require_account(self, principal: str) -> UserAccount:
        account = await self._directory().find_by_phone(principal)
        if account is None:
            raise NotFoundError(NO_WALLET)
        return account

    @staticmethod
    def _check_amount(amount: Decimal) -> None:
        if amount <= 0:
            raise ValidationError(AMOUNT_RULE)

    @staticmethod
    def _check_token(token: str, allowed, reply: str) -> None:
        if token not in allowed:
            raise ValidationError(reply)

    @staticmethod
    def _chain(name: str) -> Chain:
        chain = find_chain(name)
        if chain is None:
            raise ValidationError(f"Unknown chain: {name.lower()}\n\nAvailable: {available_chains()}")
        return chain

    def _alias_line(self, alias: Optional[str]) -> str:
        return f"\n{alias}.{self.settings.name_suffix}" if alias else ""

    def _reject(self, outcome: DownstreamOutcome, action: Action) -> DownstreamRejection:
        return DownstreamRejection(
            self.normalizer.normalize(outcome, action),
            action=action.name.lower(),
            error_class=outcome.error_class,
            detail=outcome.message,
        )

    def _spawn(self, name: str, call: Awaitable[DownstreamOutcome]) -> None:
        self.detached.spawn(name, call, timeout=self.settings.fire_and_forget_timeout_seconds)

    # Handlers

    async def _help(self, principal: str, command: Help) -> str:
        return HELP_TEXT

    async def _unrecognized(self, principal: str, command: Unrecognized) -> str:
        if command.usage:
            return command.usage
        if not command.text:
            return WELCOME
        return f"Unknown: {command.text[:15]}\n\nReply HELP for commands."

    async def _join(self, principal: str, command: Join) -> str:
        alias = command.alias
        if alias is not None and not JOIN_ALIAS_PATTERN.match(alias):
            raise ValidationError(ALIAS_RULE)
        alias = alias.lower() if alias else None

        directory = self._directory()
        account = await directory.find_by_phone(principal)
        created = False

        if account is None:
            wallet = await asyncio.to_thread(self.wallets.create_wallet)
            account = await directory.create(principal, wallet.address, wallet.encrypted_private_key)
            # Losing a concurrent JOIN yields the other request's account
            created = account.wallet_address == wallet.address
            if created:
                log_business_event("wallet_created", wallet_address=account.wallet_address)

        extra = self._alias_line(account.alias)
        if alias and not account.alias:
            extra = await self._claim_alias(account, alias)

        if created:
            return f"Wallet created!\n\n{account.wallet_address}{extra}\n\nReply DEPOSIT to fund it."
        return f"Welcome back!\n\nYour wallet:\n{account.short_address}{extra}\n\nReply BALANCE or DEPOSIT"

    async def _claim_alias(self, account: UserAccount, alias: str) -> str:
        """Check, register and persist ``alias``; returns the line to show."""
        check = await self.backend.check_name(alias)
        if not check.success:
            return f"\n\n{NAME_OFFLINE_NOTE}"
        if not check.get("available"):
            return f"\n\nName {alias} is taken."

        registration = await self.backend.register_name(alias, account.wallet_address)
        if not registration.success:
            if registration.unreachable:
                return f"\n\n{NAME_OFFLINE_NOTE}"
            return f"\n\nName {alias} is taken."

        try:
            await self._directory().update_alias(account.phone_number, alias)
        except UnavailableError as e:
            logger.error("Name registered but not saved", alias=alias, error=str(e))
        account.alias = alias
        log_business_event("name_registered", alias=alias, wallet_address=account.wallet_address)
        return self._alias_line(alias)

    async def _set_pin(self, principal: str, command: SetPin) -> str:
        if command.new_pin is None:
            return PIN_PROMPT
        if not PIN_PATTERN.match(command.new_pin):
            raise ValidationError(PIN_RULE)

        account = await self._require_account(principal)
        pin_hash = await asyncio.to_thread(self.wallets.hash_pin, command.new_pin)
        await self._directory().update_pin_hash(account.phone_number, pin_hash)
        return "PIN set!"

    async def _balance(self, principal: str, command: Balance) -> str:
        account = await self._require_account(principal)
        outcome = await self.backend.get_balance(account.wallet_address)
        if not outcome.success:
            raise self._reject(outcome, Action.BALANCE)

        balances = outcome.get("balances") or {}
        txtc = to_decimal(balances.get("txtc")) or Decimal(0)
        eth = to_decimal(balances.get("eth")) or Decimal(0)
        if txtc <= 0 and eth <= 0:
            return "Balance: $0.00\n\nReply DEPOSIT to fund wallet."
        return (
            f"Balance:\n{format_amount(txtc)} TXTC\n{format_amount(eth)} ETH\n\n"
            f"{self.settings.network_label}"
        )

    async def _deposit(self, principal: str, command: Deposit) -> str:
        account = await self._require_account(principal)
        return (
            f"Deposit ETH or TXTC to:\n{account.wallet_address}{self._alias_line(account.alias)}\n\n"
            f"{self.settings.network_label}"
        )

    async def _history(self, principal: str, command: History) -> str:
        await self._require_account(principal)
        if self.deposits is None:
            raise UnavailableError("deposit_ledger", LEDGER_OFFLINE)

        deposits = await self.deposits.recent(principal, self.settings.history_limit)
        if not deposits:
            return "No transactions yet.\nReply REDEEM <code> to add funds."
        lines = [f"${format_usd(d.amount)} via {d.source}" for d in deposits]
        return "Recent deposits:\n" + "\n".join(lines)

    async def _redeem(self, principal: str, command: Redeem) -> str:
        account = await self._require_account(principal)
        outcome = await self.backend.redeem(command.code, account.wallet_address)
        if not outcome.success:
            raise self._reject(outcome, Action.REDEEM)

        tokens = format_amount(outcome.get("tokenAmount"))
        eth = format_amount(outcome.get("ethAmount"))
        log_business_event("voucher_redeemed", token_amount=tokens, eth_amount=eth, tx_hash=outcome.get("txHash"))
        await self._record_redemption(principal, outcome)
        return f"Voucher redeemed!\n\n{tokens} TXTC\n{eth} ETH (gas)\n\nReply BALANCE to check."

    async def _record_redemption(self, principal: str, outcome: DownstreamOutcome) -> None:
        if self.deposits is None:
            return
        amount = to_decimal(outcome.get("tokenAmount")) or Decimal(0)
        try:
            await self.deposits.record(principal, amount, "voucher", outcome.get("txHash"))
        except UnavailableError as e:
            logger.warning("Redemption not recorded in ledger", error=str(e))

    async def _send(self, principal: str, command: Send) -> str:
        self._check_token(command.token, TRANSFER_TOKENS, "Only TXTC and ETH transfers supported.")
        self._check_amount(command.amount)

        account = await self._require_account(principal)
        resolution = await self.resolver.resolve(principal, command.recipient)
        if not resolution.resolved:
            raise ResolutionError(
                resolution.reply,
                detail=f"{resolution.strategy}: {resolution.failure.value}",
            )
        logger.info("Recipient resolved", strategy=resolution.strategy)

        if resolution.address.lower() == account.wallet_address.lower():
            raise ValidationError(SELF_SEND)

        amount = format_amount(command.amount)
        sender_key = await asyncio.to_thread(self.wallets.decrypt_private_key, account.encrypted_private_key)
        outcome = await self.backend.send(
            account.wallet_address,
            resolution.address,
            command.amount,
            command.token,
            sender_key,
        )
        if not outcome.success:
            raise self._reject(outcome, Action.SEND)

        log_business_event(
            "transfer_sent",
            amount=amount,
            token=command.token,
            strategy=resolution.strategy,
            transaction_id=outcome.get("transactionId"),
        )
        return f"Sent {amount} {command.token} to {command.recipient}!\n\nReply BALANCE to check."

    async def _swap(self, principal: str, command: Swap) -> str:
        self._check_token(command.token, SWAP_TOKENS, "Only TXTC swaps supported.")
        self._check_amount(command.amount)

        account = await self._require_account(principal)
        reply = f"Swapping {format_amount(command.amount)} TXTC for ETH...\n\n{ASYNC_FOOTER}"
        self._spawn("swap", self.backend.swap(account.wallet_address, command.amount, principal))
        return reply

    async def _cashout(self, principal: str, command: Cashout) -> str:
        self._check_token(command.token, CASHOUT_TOKENS, "Only TXTC and ETH cashouts supported.")
        self._check_amount(command.amount)

        account = await self._require_account(principal)
        reply = f"Cashing out {format_amount(command.amount)} {command.token} to USDC...\n\n{ASYNC_FOOTER}"
        self._spawn(
            "cashout",
            self.cashout.cashout(principal, account.wallet_address, command.amount, command.token),
        )
        return reply

    async def _buy(self, principal: str, command: Buy) -> str:
        self._check_amount(command.amount)

        account = await self._require_account(principal)
        reply = f"Buying TXTC with {format_amount(command.amount)} airtime credit...\n\n{ASYNC_FOOTER}"
        self._spawn("buy", self.backend.buy(account.wallet_address, command.amount, principal))
        return reply

    async def _bridge(self, principal: str, command: Bridge) -> str:
        self._check_amount(command.amount)
        source = self._chain(command.source_chain)
        destination = self._chain(command.destination_chain)
        if source == destination:
            raise ValidationError("Pick two different chains.")

        account = await self._require_account(principal)
        reply = (
            f"Bridging {format_amount(command.amount)} {command.token} "
            f"from {source.name} to {destination.name}...\n\n{ASYNC_FOOTER}"
        )
        self._spawn(
            "bridge",
            self.backend.bridge(
                account.wallet_address,
                command.amount,
                command.token,
                source.key,
                destination.key,
                principal,
            ),
        )
        return reply

    async def _save_contact(self, principal: str, command: SaveContact) -> str:
        if not ALIAS_PATTERN.match(command.name):
            raise ValidationError(CONTACT_NAME_RULE)
        phone = normalize_phone(command.phone)
        if not CONTACT_PHONE_PATTERN.match(phone):
            raise ValidationError(CONTACT_PHONE_RULE)

        await self._require_account(principal)
        if self.contacts is None:
            raise UnavailableError("contact_book", CONTACTS_OFFLINE)

        await self.contacts.add(principal, command.name, phone=phone)
        return f"Saved {phone} as {command.name}."

    async def _list_contacts(self, principal: str, command: ListContacts) -> str:
        await self._require_account(principal)
        if self.contacts is None:
            raise UnavailableError("contact_book", CONTACTS_OFFLINE)

        contacts = await self.contacts.list(principal)
        if not contacts:
            return "No contacts yet.\n\nSAVE <name> <phone>"
        shown = contacts[: self.settings.contacts_display_limit]
        return "Contacts:\n" + "\n".join(contact.to_sms_string() for contact in shown)

    async def _switch_chain(self, principal: str, command: SwitchChain) -> str:
        chain = self._chain(command.chain)
        await self._require_account(principal)
        return f"Switched to {chain.name}!\n\nChain ID: {chain.chain_id}\nNative: {chain.native_token}"
