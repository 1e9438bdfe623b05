"""Parsed user command."""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional


class CommandOp(Enum):
    ADD = "add"
    REMOVE = "rm"


@dataclass(frozen=True)
class Command:
    """A parsed ``add`` / ``rm`` command.

    ``amount`` and ``price`` are set only for ADD with the portfolio flag.
    """
    op: CommandOp
    identifier: str
    watchlist: bool = False
    portfolio: bool = False
    amount: Optional[Decimal] = None
    price: Optional[Decimal] = None

    def describe(self) -> str:
        targets = []
        if self.watchlist:
            targets.append("watchlist")
        if self.portfolio:
            targets.append("portfolio")
        verb = "Added" if self.op == CommandOp.ADD else "Removed"
        prep = "to" if self.op == CommandOp.ADD else "from"
        return f"{verb} {self.identifier} {prep} {' and '.join(targets)}"
