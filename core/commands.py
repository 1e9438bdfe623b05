"""
Command interpreter for the command-mode input line.

Grammar:
    add <id> [-w | -p <amount> <price> | -wp <amount> <price>]
    rm  <id> [-w | -p | -wp]

``add`` without a flag means ``-w``; ``rm`` without a flag means ``-wp``.
``-pw`` is accepted as an alias of ``-wp``. Keywords and flags are
case-sensitive.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from core.errors import CommandSyntaxError
from core.helpers.validation import MAX_HOLDING_NUMBER, finite_decimal, within_holding_range
from core.logging_utils import get_logger
from core.models import Command, CommandOp, Holding, TrackedToken, normalize_identifier
from core.state_store import MembershipChange, StateStore

logger = get_logger(__name__)

ADD_USAGE = "Usage: add <name> [-w | -p <amount> <price> | -wp <amount> <price>]"
RM_USAGE = "Usage: rm <name> [-w | -p | -wp]"

# flag -> (watchlist, portfolio)
FLAGS = {
    "-w": (True, False),
    "-p": (False, True),
    "-wp": (True, True),
    "-pw": (True, True),
}


@dataclass(frozen=True)
class CommandOutcome:
    """Result of applying a command to the store."""
    command: Command
    token: Optional[TrackedToken]  # None when the token is not tracked afterwards
    changed: bool

    @property
    def removed(self) -> bool:
        return self.token is None

    @property
    def message(self) -> str:
        if not self.changed:
            return f"Nothing to do for {self.command.identifier}"
        if self.command.op == CommandOp.REMOVE and self.token is None:
            return f"Stopped tracking {self.command.identifier}"
        return self.command.describe()


def _parse_number(raw: str, label: str) -> Decimal:
    value = finite_decimal(raw)
    if value is None:
        raise CommandSyntaxError(f"Invalid {label}: {raw!r} is not a number")
    if value < 0:
        raise CommandSyntaxError(f"Invalid {label}: {raw} is negative")
    if not within_holding_range(value):
        raise CommandSyntaxError(f"Invalid {label}: {raw} exceeds {MAX_HOLDING_NUMBER:,.0f}")
    return value


def parse_command(text: str) -> Command:
    """Parse one command line. Raises CommandSyntaxError on malformed input."""
    parts: List[str] = (text or "").split()
    if not parts:
        raise CommandSyntaxError("Empty command")

    keyword = parts[0]
    if keyword == CommandOp.ADD.value:
        op, usage = CommandOp.ADD, ADD_USAGE
    elif keyword == CommandOp.REMOVE.value:
        op, usage = CommandOp.REMOVE, RM_USAGE
    else:
        raise CommandSyntaxError(f"Unknown command {keyword!r}. Available commands: add, rm")

    if len(parts) < 2:
        raise CommandSyntaxError(usage)
    identifier = normalize_identifier(parts[1])
    if not identifier or identifier.startswith("-"):
        raise CommandSyntaxError(usage)

    rest = parts[2:]
    if not rest:
        if op == CommandOp.ADD:
            return Command(op=op, identifier=identifier, watchlist=True)
        return Command(op=op, identifier=identifier, watchlist=True, portfolio=True)

    flag = rest[0]
    if flag not in FLAGS:
        raise CommandSyntaxError(f"Invalid flag {flag!r}. {usage}")
    watchlist, portfolio = FLAGS[flag]
    args = rest[1:]

    if op == CommandOp.REMOVE or not portfolio:
        if args:
            raise CommandSyntaxError(f"Unexpected arguments: {' '.join(args)}. {usage}")
        return Command(op=op, identifier=identifier, watchlist=watchlist, portfolio=portfolio)

    if len(args) < 2:
        raise CommandSyntaxError(f"{flag} needs an amount and a price. {usage}")
    if len(args) > 2:
        raise CommandSyntaxError(f"Unexpected arguments: {' '.join(args[2:])}. {usage}")

    return Command(
        op=op,
        identifier=identifier,
        watchlist=watchlist,
        portfolio=portfolio,
        amount=_parse_number(args[0], "amount"),
        price=_parse_number(args[1], "price"),
    )


def to_membership_change(command: Command) -> MembershipChange:
    """Translate a command into a store change. Untargeted flags stay untouched."""
    if command.op == CommandOp.ADD:
        holding = None
        if command.portfolio:
            # Holding validates sign and finiteness (ValidationError)
            holding = Holding(amount=command.amount, avg_buy_price=command.price)
        return MembershipChange(
            watchlist=True if command.watchlist else None,
            portfolio=True if command.portfolio else None,
            holding=holding,
        )
    return MembershipChange(
        watchlist=False if command.watchlist else None,
        portfolio=False if command.portfolio else None,
    )


def apply_command(store: StateStore, command: Command) -> CommandOutcome:
    """Apply a parsed command. ValidationError leaves the store unchanged."""
    before = store.get(command.identifier)
    change = to_membership_change(command)
    after = store.upsert_membership(command.identifier, change)
    outcome = CommandOutcome(command=command, token=after, changed=before != after)
    logger.info("[CMD] %s", outcome.message)
    return outcome


def execute(store: StateStore, text: str) -> CommandOutcome:
    """Parse and apply a command line."""
    return apply_command(store, parse_command(text))
