"""Tests for command parsing and application."""

from decimal import Decimal

import pytest

from conftest import FIXED_AT, market
from core.commands import apply_command, execute, parse_command
from core.errors import CommandSyntaxError, ValidationError
from core.models import Command, CommandOp, Holding
from core.pnl_engine import summarize_portfolio
from core.reconciler import reconcile
from core.state_store import StateStore


@pytest.mark.parametrize("text", [
    "",
    "   ",
    "buy bitcoin",
    "ADD bitcoin",
    "add",
    "add -w",
    "add bitcoin -x",
    "add bitcoin -p",
    "add bitcoin -p 5",
    "add bitcoin -wp 5",
    "add bitcoin -p 5 300 7",
    "add bitcoin -p five 300",
    "add bitcoin -p 5 -300",
    "add bitcoin -p nan 300",
    "add bitcoin -w extra",
    "rm",
    "rm bitcoin -p 5 300",
    "rm bitcoin --all",
])
def test_malformed_commands_raise(text):
    with pytest.raises(CommandSyntaxError):
        parse_command(text)


def test_add_defaults_to_watchlist():
    cmd = parse_command("add Bitcoin")
    assert cmd.op == CommandOp.ADD
    assert cmd.identifier == "bitcoin"
    assert cmd.watchlist and not cmd.portfolio


def test_rm_defaults_to_both():
    cmd = parse_command("rm bitcoin")
    assert cmd.op == CommandOp.REMOVE
    assert cmd.watchlist and cmd.portfolio


def test_pw_is_alias_of_wp():
    assert parse_command("add sol -pw 1 2") == parse_command("add sol -wp 1 2")


def test_parse_amount_and_price_as_decimal():
    cmd = parse_command("add solana -p 0.1 99.99")
    assert cmd.amount == Decimal("0.1")
    assert cmd.price == Decimal("99.99")


def test_syntax_error_leaves_store_untouched(store):
    before = store.get_all()
    with pytest.raises(CommandSyntaxError):
        execute(store, "add ethereum -p 1")
    assert store.get_all() == before


def test_add_portfolio_overwrites_holding(store):
    outcome = execute(store, "add solana -p 5 300")
    token = store.get("solana")
    assert outcome.changed
    assert token.holding.amount == Decimal("5")
    assert token.holding.avg_buy_price == Decimal("300")
    assert token.holding.cost_basis == Decimal("1500")


def test_add_watchlist_to_portfolio_token_keeps_holding(store):
    execute(store, "add solana -w")
    token = store.get("solana")
    assert token.in_watchlist
    assert token.holding.amount == Decimal("20")


def test_last_command_per_flag_wins():
    store = StateStore()
    execute(store, "add ada -wp 1 1")
    execute(store, "rm ada -w")
    execute(store, "add ada -p 3 4")
    token = store.get("ada")
    assert not token.in_watchlist
    assert token.holding.amount == Decimal("3")


def test_rm_both_untracks(store):
    outcome = execute(store, "rm ethereum -wp")
    assert outcome.removed
    assert "ethereum" not in store


def test_rm_last_membership_untracks(store):
    execute(store, "rm bitcoin -w")
    assert "bitcoin" not in store
    assert len(store) == 2


def test_rm_absent_membership_is_noop(store):
    before = store.get("solana")
    outcome = execute(store, "rm solana -w")
    assert not outcome.changed
    assert store.get("solana") == before


def test_rm_unknown_token_is_noop(store):
    outcome = execute(store, "rm dogecoin")
    assert not outcome.changed
    assert len(store) == 3


def test_repeated_add_is_idempotent(store):
    execute(store, "add cardano -wp 2 0.5")
    first = store.get_all()
    outcome = execute(store, "add cardano -wp 2 0.5")
    assert not outcome.changed
    assert store.get_all() == first


def test_zero_amount_holding_is_allowed():
    store = StateStore()
    execute(store, "add pepe -p 0 0")
    token = store.get("pepe")
    assert token.in_portfolio
    assert token.holding.cost_basis == 0


def test_apply_command_validation_error_is_atomic(store):
    # Bypass the parser to hand the store an invalid holding
    bad = Command(op=CommandOp.ADD, identifier="solana", portfolio=True, amount=Decimal("-1"), price=Decimal("1"))
    before = store.get_all()
    with pytest.raises(ValidationError):
        apply_command(store, bad)
    assert store.get_all() == before


def test_outcome_messages(store):
    assert execute(store, "add cardano").message == "Added cardano to watchlist"
    assert execute(store, "rm cardano").message == "Stopped tracking cardano"
    assert execute(store, "rm cardano").message == "Nothing to do for cardano"


@pytest.mark.parametrize("text", [
    "add bitcoin -p 1e600000 1e600000",
    "add bitcoin -p 1e400 10",
    "add bitcoin -wp 10 1e19",
])
def test_out_of_range_numbers_raise(text):
    with pytest.raises(CommandSyntaxError):
        parse_command(text)


def test_huge_holding_rejected_before_it_reaches_the_store(store):
    with pytest.raises(CommandSyntaxError):
        execute(store, "add bitcoin -p 1e600000 1e600000")
    reconcile(store, {"bitcoin": market(50000)}, FIXED_AT)
    summary = summarize_portfolio(store.get_all())
    assert store.get("bitcoin").holding is None
    assert summary.priced_tokens == 0

    with pytest.raises(ValidationError):
        Holding(amount=Decimal("1e600000"), avg_buy_price=Decimal("1"))


def test_largest_allowed_holding_prices_cleanly(store):
    execute(store, "add bitcoin -p 1e18 1e18")
    reconcile(store, {"bitcoin": market(50000)}, FIXED_AT)
    summary = summarize_portfolio(store.get_all())
    assert summary.total_value > 0
