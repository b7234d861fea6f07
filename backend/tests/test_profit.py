"""Tests for the profit/labor calculator and its settings file."""
import json

import pytest
from pydantic import ValidationError as PydanticValidationError

from printshop.finance.profit import (
    PricedItem,
    ProfitOverride,
    ProfitSettings,
    allocate_item_profit,
    compute_profit_and_labor,
    find_override,
)
from printshop.models.accounts import Account, AllocationRule
from printshop.settings_store import (
    PROFIT_SETTINGS_FILE,
    load_profit_settings,
    save_profit_settings,
)


def _settings(**kw):
    base = dict(
        enabled=True,
        calculation_basis="unit_price",
        default_profit_percentage=30,
        include_labor=True,
        labor_percentage=10,
    )
    base.update(kw)
    return ProfitSettings(**base)


BANNER = PricedItem(
    item_id="itm-banner",
    category_id="cat-large",
    item_name="Vinyl Banner",
    category_name="Large Format",
    quantity=2,
    unit_price=100,
)


class TestComputeProfit:
    def test_disabled_gives_zero(self):
        result = compute_profit_and_labor(BANNER, _settings(enabled=False))
        assert result.profit_amount == 0
        assert result.labor_amount == 0
        assert result.total_amount == 200
        assert result.matched is None

    def test_unit_price_basis(self):
        result = compute_profit_and_labor(BANNER, _settings())
        assert result.profit_amount == pytest.approx(30.0)
        assert result.labor_amount == pytest.approx(7.0)
        assert result.total_amount == 200

    def test_total_cost_basis_uses_line_total(self):
        result = compute_profit_and_labor(BANNER, _settings(calculation_basis="total_cost"))
        assert result.profit_amount == pytest.approx(60.0)
        assert result.labor_amount == pytest.approx(14.0)

    def test_total_cost_basis_prefers_given_total(self):
        item = BANNER.model_copy(update={"total_amount": 180})
        result = compute_profit_and_labor(item, _settings(calculation_basis="total_cost"))
        assert result.profit_amount == pytest.approx(54.0)

    def test_labor_off(self):
        result = compute_profit_and_labor(BANNER, _settings(include_labor=False))
        assert result.profit_amount == pytest.approx(30.0)
        assert result.labor_amount == 0


class TestOverrides:
    def test_precedence_item_id_first(self):
        ps = _settings(
            overrides=[
                ProfitOverride(type="category", name="Large Format", profit_percentage=5),
                ProfitOverride(id="cat-large", type="category", name="x", profit_percentage=15),
                ProfitOverride(type="item", name="vinyl banner", profit_percentage=20),
                ProfitOverride(id="itm-banner", type="item", name="y", profit_percentage=50),
            ]
        )
        match = find_override(BANNER, ps)
        assert match.strategy == "item_id"
        assert match.override.profit_percentage == 50

    def test_precedence_walks_down(self):
        overrides = [
            ProfitOverride(type="category", name="LARGE FORMAT", profit_percentage=5),
            ProfitOverride(id="cat-large", type="category", name="x", profit_percentage=15),
            ProfitOverride(type="item", name="VINYL BANNER", profit_percentage=20),
        ]
        assert find_override(BANNER, _settings(overrides=overrides)).strategy == "item_name"
        assert find_override(BANNER, _settings(overrides=overrides[:2])).strategy == "category_id"
        assert find_override(BANNER, _settings(overrides=overrides[:1])).strategy == "category_name"

    def test_type_must_match(self):
        ps = _settings(overrides=[ProfitOverride(type="item", name="Large Format")])
        assert find_override(BANNER, ps) is None

    def test_unset_percentage_falls_back_to_global(self):
        ps = _settings(
            overrides=[ProfitOverride(type="item", name="Vinyl Banner", labor_percentage=50)]
        )
        result = compute_profit_and_labor(BANNER, ps)
        assert result.profit_amount == pytest.approx(30.0)
        assert result.labor_amount == pytest.approx(35.0)
        assert result.matched.strategy == "item_name"

    def test_override_percentage_range(self):
        with pytest.raises(PydanticValidationError):
            ProfitOverride(type="item", name="x", profit_percentage=120)


class TestAllocateItemProfit:
    def test_allocates_per_unit_amounts_times_quantity(self, store):
        profit_acc, labor_acc = Account(name="Profit"), Account(name="Labor")
        store.save(profit_acc, labor_acc)
        store.save(
            AllocationRule(source_type="profit", account_id=profit_acc.id, percentage=100),
            AllocationRule(source_type="labor", account_id=labor_acc.id, percentage=100),
        )
        breakdown = compute_profit_and_labor(BANNER, _settings())
        rows = allocate_item_profit(store, 7, "Vinyl Banner", 2, 100, breakdown)

        by_account = {r.account_id: r for r in rows}
        assert by_account[profit_acc.id].amount == 60.0
        assert by_account[labor_acc.id].amount == 14.0
        assert by_account[profit_acc.id].source_id == "7"
        assert by_account[profit_acc.id].description == "Profit allocation for Vinyl Banner (2 x 100)"

    def test_total_cost_basis_allocates_line_amounts_once(self, store):
        profit_acc, labor_acc = Account(name="Profit"), Account(name="Labor")
        store.save(profit_acc, labor_acc)
        store.save(
            AllocationRule(source_type="profit", account_id=profit_acc.id, percentage=100),
            AllocationRule(source_type="labor", account_id=labor_acc.id, percentage=100),
        )
        breakdown = compute_profit_and_labor(BANNER, _settings(calculation_basis="total_cost"))
        assert breakdown.per_unit is False
        rows = allocate_item_profit(store, 7, "Vinyl Banner", 2, 100, breakdown)

        by_account = {r.account_id: r for r in rows}
        assert by_account[profit_acc.id].amount == 60.0
        assert by_account[labor_acc.id].amount == 14.0

    def test_zero_amounts_skip_allocation(self, store):
        breakdown = compute_profit_and_labor(BANNER, _settings(enabled=False))
        assert allocate_item_profit(store, 7, "Vinyl Banner", 2, 100, breakdown) == []


class TestSettingsFile:
    def test_missing_file_gives_defaults(self, tmp_path):
        ps = load_profit_settings(tmp_path)
        assert ps.enabled is False
        assert ps.calculation_basis == "unit_price"
        assert ps.default_profit_percentage == 30
        assert ps.labor_percentage == 10
        assert ps.overrides == []

    def test_save_then_load(self, tmp_path):
        saved = _settings(overrides=[ProfitOverride(type="category", name="Stickers")])
        save_profit_settings(saved, tmp_path)

        raw = json.loads((tmp_path / PROFIT_SETTINGS_FILE).read_text(encoding="utf-8"))
        assert "last_modified" in raw

        loaded = load_profit_settings(tmp_path)
        assert loaded == saved

    def test_corrupt_file_gives_defaults(self, tmp_path):
        (tmp_path / PROFIT_SETTINGS_FILE).write_text("{not json", encoding="utf-8")
        assert load_profit_settings(tmp_path) == ProfitSettings()
