"""Tests for the simulated price tick."""

import random

import pytest

from conftest import make_instrument
from market.price_generator import PriceGenerator, apply_tick, next_price


def test_next_price_rounds_to_two_dp() -> None:
    assert next_price(100.0, 1.234) == 101.23
    assert next_price(100.0, -0.5) == 99.5


def test_next_price_floors_at_min_price() -> None:
    assert next_price(0.01, -1.5) == 0.01
    assert next_price(0.02, -60.0, min_price=0.05) == 0.05


def test_apply_tick_change_relative_to_previous_close() -> None:
    inst = make_instrument("1", "REL", 100.0, previous_close=100.0)
    first = apply_tick(inst, 102.0)
    second = apply_tick(first, 101.0)
    assert second.change == 1.0
    assert second.change_percent == 1.0
    assert second.previous_close == 100.0


def test_apply_tick_widens_day_range_only() -> None:
    inst = make_instrument("1", "REL", 100.0)
    up = apply_tick(inst, 105.0)
    assert up.day_high == 105.0 and up.day_low == 100.0
    down = apply_tick(up, 95.0)
    assert down.day_high == 105.0 and down.day_low == 95.0
    back = apply_tick(down, 100.0)
    assert back.day_high == 105.0 and back.day_low == 95.0


def test_apply_tick_does_not_mutate_input() -> None:
    inst = make_instrument("1", "REL", 100.0)
    apply_tick(inst, 150.0)
    assert inst.current_price == 100.0


def test_tick_moves_within_max_range() -> None:
    gen = PriceGenerator([make_instrument("1", "REL", 1000.0)], rng=random.Random(1))
    price = 1000.0
    for _ in range(200):
        (inst,) = gen.tick()
        assert abs(inst.current_price - price) <= price * 0.015 + 0.01
        assert inst.current_price >= 0.01
        assert round(inst.current_price, 2) == inst.current_price
        price = inst.current_price
    assert gen.ticks == 200


def test_tick_is_deterministic_for_seed() -> None:
    a = PriceGenerator([make_instrument("1", "REL", 100.0)], rng=random.Random(42))
    b = PriceGenerator([make_instrument("1", "REL", 100.0)], rng=random.Random(42))
    assert [a.tick()[0].current_price for _ in range(5)] == [b.tick()[0].current_price for _ in range(5)]


def test_snapshots_are_copies() -> None:
    gen = PriceGenerator([make_instrument("1", "REL", 100.0)])
    snap = gen.instruments()[0]
    snap.current_price = 1.0
    assert gen.get("1").current_price == 100.0


def test_table_is_read_only() -> None:
    gen = PriceGenerator([make_instrument("1", "REL", 100.0)])
    with pytest.raises(TypeError):
        gen.table()["2"] = make_instrument("2", "X", 1.0)


def test_set_price_and_lookup_by_symbol() -> None:
    gen = PriceGenerator([make_instrument("1", "REL", 100.0)])
    gen.set_price("1", 90.456)
    assert gen.by_symbol("rel").current_price == 90.46
    assert "1" in gen
    assert gen.by_symbol("NOPE") is None


@pytest.mark.parametrize("bad", [float("nan"), float("inf"), float("-inf")])
def test_set_price_rejects_non_finite(bad: float) -> None:
    gen = PriceGenerator([make_instrument("1", "REL", 100.0)])
    with pytest.raises(ValueError, match="finite"):
        gen.set_price("1", bad)
    assert gen.get("1").current_price == 100.0


def test_replace_all_swaps_the_table() -> None:
    gen = PriceGenerator([make_instrument("1", "REL", 100.0)])
    gen.replace_all([make_instrument("2", "TCS", 3945.6)])
    assert "1" not in gen
    assert gen.by_symbol("TCS").current_price == 3945.6
