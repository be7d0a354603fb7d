from datetime import UTC, datetime
from types import SimpleNamespace

from actify.services.budget_stock import (
    build_month_options,
    compute_low_threshold,
    filter_items,
    is_low_stock,
    normalize_budget_category,
    round_count,
    serialize_item,
)


def test_normalize_budget_category():
    assert normalize_budget_category("snack") == "Snacks"
    assert normalize_budget_category("  CRAFTS ") == "Craft Supplies"
    assert normalize_budget_category("other") == "Misc"
    assert normalize_budget_category("prizes") == "Prizes"
    assert normalize_budget_category("") == "Misc"
    assert normalize_budget_category(None) == "Misc"
    assert normalize_budget_category("  Garden   Club ") == "Garden Club"


def test_low_threshold_prefers_reorder_point():
    assert compute_low_threshold(10) == 3
    assert compute_low_threshold(10, 5) == 5
    assert compute_low_threshold(2) == 0
    assert is_low_stock(3, 10)
    assert not is_low_stock(4, 10)
    assert is_low_stock(0, 0)


def _item(**overrides):
    values = dict(
        id="item-1", name="Bingo Cards", category="Activity Supplies", unit="each", on_hand=2,
        par_level=10, reorder_point=None, cost_per_unit=0.5, vendor="Acme", is_active=True,
        updated_at=datetime(2026, 3, 1, tzinfo=UTC),
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def test_serialize_item_flags_low_stock():
    row = serialize_item(_item())
    assert row["status"] == "low"
    assert row["threshold"] == 3
    assert row["suggestedReorderQty"] == 8
    ok = serialize_item(_item(on_hand=12))
    assert ok["status"] == "ok"
    assert ok["suggestedReorderQty"] == 0


def test_filter_items():
    rows = [
        serialize_item(_item(id="a", name="Bingo Cards", vendor=None)),
        serialize_item(_item(id="b", name="Lemonade", category="Drinks", on_hand=40, vendor="Costco")),
    ]
    assert [r["id"] for r in filter_items(rows, search="costco")] == ["b"]
    assert [r["id"] for r in filter_items(rows, low_only=True)] == ["a"]
    assert [r["id"] for r in filter_items(rows, categories=["drinks", " "])] == ["b"]
    assert len(filter_items(rows)) == 2


def test_build_month_options_walks_backwards():
    options = build_month_options("America/New_York", count=3, now=datetime(2026, 1, 15, 12, tzinfo=UTC))
    assert options == [
        {"key": "2026-01", "label": "January 2026"},
        {"key": "2025-12", "label": "December 2025"},
        {"key": "2025-11", "label": "November 2025"},
    ]


def test_round_count_rounds_halves_up():
    assert round_count(0.5) == 1
    assert round_count(2.5) == 3
    assert round_count(0.2) == 0
    assert round_count(-0.5) == 0
    assert round_count(-2.6) == -3
