"""
Maps downstream outcomes onto the fixed vocabulary of SMS replies.

Downstream error text is free-form and changes without notice, so it is
only ever matched against the rules below and never shown to the user.
Rules are evaluated in order and the first match wins; each rule is scoped
to the actions for which its wording makes sense.
"""
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, List, Optional, Tuple

import structlog

from textchain.models.outcomes import DownstreamOutcome

logger = structlog.get_logger(__name__)


class Action(Enum):
    """Downstream operations whose failures are rendered for the user."""

    BALANCE = "Balance"
    SEND = "Transfer"
    REDEEM = "Redemption"
    SWAP = "Swap"
    CASHOUT = "Cashout"
    BUY = "Purchase"
    BRIDGE = "Bridge"

    @property
    def label(self) -> str:
        return self.value


VALUE_ACTIONS = frozenset({Action.SEND, Action.SWAP, Action.CASHOUT, Action.BUY, Action.BRIDGE})
PRICED_ACTIONS = frozenset({Action.SWAP, Action.CASHOUT, Action.BRIDGE})


@dataclass(frozen=True)
class Rule:
    """
    One (pattern -> reply) mapping.

    A rule matches when the outcome's error class is one of
    ``error_classes`` or its message contains one of ``patterns``
    (case-insensitive). ``actions`` of ``None`` applies to every action.
    """

    name: str
    reply: str
    patterns: Tuple[str, ...] = ()
    error_classes: FrozenSet[str] = frozenset()
    actions: Optional[FrozenSet[Action]] = None

    def matches(self, outcome: DownstreamOutcome, action: Action) -> bool:
        if self.actions is not None and action not in self.actions:
            return False
        if outcome.error_class and outcome.error_class in self.error_classes:
            return True
        message = (outcome.message or "").lower()
        return any(pattern in message for pattern in self.patterns)


DEFAULT_RULES: List[Rule] = [
    Rule(
        name="transport",
        reply="Network error. Try later.",
        error_classes=frozenset({"timeout", "unavailable"}),
    ),
    Rule(
        name="voucher_used",
        reply="Voucher already used.",
        patterns=("already redeemed", "alreadyredeemed"),
        actions=frozenset({Action.REDEEM}),
    ),
    Rule(
        name="voucher_invalid",
        reply="Invalid voucher code.",
        patterns=("not found", "invalid"),
        actions=frozenset({Action.REDEEM}),
    ),
    Rule(
        name="insufficient_funds",
        reply="Insufficient balance.",
        patterns=("insufficient", "balance"),
        actions=VALUE_ACTIONS,
    ),
    Rule(
        name="slippage",
        reply="Price moved too much. Try again.",
        patterns=("slippage",),
        actions=PRICED_ACTIONS,
    ),
]


class ResponseNormalizer:
    """Renders a downstream outcome as a user-safe reply."""

    def __init__(self, rules: Optional[List[Rule]] = None):
        self.rules = list(rules) if rules is not None else list(DEFAULT_RULES)

    def classify(self, outcome: DownstreamOutcome, action: Action) -> Optional[Rule]:
        """Return the first rule matching a failed outcome, if any."""
        for rule in self.rules:
            if rule.matches(outcome, action):
                return rule
        return None

    def normalize(
        self,
        outcome: DownstreamOutcome,
        action: Action,
        success_reply: Optional[str] = None,
    ) -> str:
        """
        Render ``outcome`` for the user.

        Args:
            outcome: Result of the downstream call
            action: Operation the call performed
            success_reply: Reply to use when the call succeeded

        Returns:
            ``success_reply`` on success, otherwise a fixed failure reply
        """
        if outcome.success:
            return success_reply if success_reply is not None else f"{action.label} complete."

        rule = self.classify(outcome, action)
        logger.info(
            "Downstream failure normalized",
            action=action.name.lower(),
            rule=rule.name if rule else "fallback",
            error_class=outcome.error_class,
            downstream_error=outcome.message,
        )
        if rule is not None:
            return rule.reply
        return f"{action.label} failed. Try later."

