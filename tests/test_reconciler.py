from decimal import Decimal

from conftest import FIXED_AT, market
from core.commands import execute
from core.pnl_engine import derive
from core.reconciler import reconcile
from core.sort_engine import SortColumn, View, members, sort_tokens
from core.state_store import StateStore


def test_reconcile_updates_every_tracked_token(store, snapshot):
    report = reconcile(store, snapshot, FIXED_AT)
    assert sorted(report.updated) == ["bitcoin", "ethereum", "solana"]
    assert not report.is_partial
    assert all(t.updated_at == FIXED_AT for t in store.get_all())


def test_portfolio_values_after_reconcile(store, snapshot):
    reconcile(store, snapshot, FIXED_AT)

    sol = derive(store.get("solana"))
    assert sol.current_value == Decimal("2500")
    assert sol.cost_basis == Decimal("2000")
    assert sol.pnl == Decimal("500")
    assert sol.pnl_pct == Decimal("25")

    eth = derive(store.get("ethereum"))
    assert eth.current_value == Decimal("10000")
    assert eth.cost_basis == Decimal("9000")
    assert eth.pnl == Decimal("1000")
    assert round(eth.pnl_pct, 2) == Decimal("11.11")

    portfolio = [t.identifier for t in members(store.get_all(), View.PORTFOLIO)]
    assert portfolio == ["ethereum", "solana"]
    assert derive(store.get("bitcoin")) is None


def test_missing_tokens_keep_last_values(store, snapshot):
    reconcile(store, snapshot, FIXED_AT)
    later = FIXED_AT.replace(hour=13)

    report = reconcile(store, {"bitcoin": market(41000)}, later)

    assert report.updated == ["bitcoin"]
    assert sorted(report.missing) == ["ethereum", "solana"]
    assert report.is_partial
    eth = store.get("ethereum")
    assert eth.price == Decimal("2000")
    assert eth.updated_at == FIXED_AT
    assert store.get("bitcoin").updated_at == later


def test_untracked_snapshot_entries_are_ignored(store):
    report = reconcile(store, {"Dogecoin": market(0.1), "BITCOIN": market(1)}, FIXED_AT)
    assert report.ignored == ["dogecoin"]
    assert report.updated == ["bitcoin"]
    assert "dogecoin" not in store


def test_reconcile_never_touches_holdings(store, snapshot):
    before = {t.identifier: (t.in_watchlist, t.holding) for t in store.get_all()}
    reconcile(store, snapshot, FIXED_AT)
    after = {t.identifier: (t.in_watchlist, t.holding) for t in store.get_all()}
    assert before == after


def test_market_fields_replaced_wholesale(store):
    reconcile(store, {"bitcoin": market(40000, percent_change_24h=3, market_cap=1)}, FIXED_AT)
    reconcile(store, {"bitcoin": market(40100)}, FIXED_AT)
    token = store.get("bitcoin")
    assert token.price == Decimal("40100")
    assert token.market.percent_change_24h is None
    assert token.market.market_cap is None


def test_commands_then_reconcile_from_empty():
    store = StateStore()
    execute(store, "add bitcoin -w")
    execute(store, "add solana -p 10 200")
    execute(store, "add ethereum -wp 5 1800")
    reconcile(store, {"bitcoin": market(50000), "solana": market(250), "ethereum": market(2000)}, FIXED_AT)

    assert len(store) == 3
    sol = derive(store.get("solana"))
    assert (sol.current_value, sol.cost_basis, sol.pnl, sol.pnl_pct) == (2500, 2000, 500, 25)
    eth = derive(store.get("ethereum"))
    assert (eth.current_value, eth.cost_basis, eth.pnl) == (10000, 9000, 1000)
    assert store.get("bitcoin").holding is None
    ordered = sort_tokens(store.get_all(), View.PORTFOLIO, SortColumn.PROFIT_LOSS, ascending=False)
    assert [t.identifier for t in ordered] == ["ethereum", "solana"]
