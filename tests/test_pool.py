"""
Liquidity pool tests
====================
Seeding, multi-tick swaps, tick crossing, iteration cap, snapshots and depth.
Run with: python3 -m pytest tests/test_pool.py -v
"""

import math
import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from launch_sim.errors import InvalidInput
from launch_sim.services.pool import MAX_SWAP_ITERATIONS, LiquidityPool, TickMap
from launch_sim.services.price_math import price_to_tick


# ── Helpers ──────────────────────────────────────────────────────────────────

def make_pool(label="PT") -> LiquidityPool:
    """Price 1.0, range [0.5, 4], 50k of each side deposited."""
    pool = LiquidityPool(label)
    pool.seed(1.0, 0.5, 4.0, quote_amount=50_000, base_amount=50_000)
    return pool


def make_ladder_pool(rungs=80) -> LiquidityPool:
    """Adjacent one-spacing positions below price 1.0, none of them active at tick 0."""
    pool = LiquidityPool("LADDER")
    pool.sqrt_price = 1.0
    pool.tick = 0
    for i in range(rungs):
        pool.add_position(-60 * (i + 1), -60 * i, 1000.0)
    return pool


# ── Tick map ─────────────────────────────────────────────────────────────────

def test_tick_map_keeps_boundaries_sorted():
    ticks = TickMap()
    for t in (120, -60, 0, 120):
        ticks.add(t, 1.0)
    assert [t for t, _ in ticks.items()] == [-60, 0, 120]
    assert ticks.net(120) == 2.0
    assert ticks.next_above(0) == 120
    assert ticks.next_at_or_below(-1) == -60
    assert ticks.next_at_or_below(-61) is None
    assert ticks.next_above(120) is None


# ── Seeding ──────────────────────────────────────────────────────────────────

def test_seed_aligns_range_to_spacing_and_activates_liquidity():
    pool = make_pool()
    pos = pool.positions[0]
    assert pos.tick_lower % pool.tick_spacing == 0
    assert pos.tick_upper % pool.tick_spacing == 0
    assert pos.tick_lower <= price_to_tick(0.5)
    assert pos.tick_upper >= price_to_tick(4.0)
    assert pool.tick == 0
    assert pool.liquidity == pos.liquidity > 0
    assert pool.active_positions == [0]


def test_position_outside_range_is_not_active():
    pool = make_ladder_pool(rungs=3)
    assert pool.liquidity == 0
    assert pool.active_positions == []


# ── Swaps ────────────────────────────────────────────────────────────────────

def test_sell_lowers_price_and_pays_less_than_spot():
    pool = make_pool()
    p0 = pool.price
    result = pool.swap(1000.0, zero_for_one=True)
    assert pool.price < p0
    assert 0 < result.amount_out < result.amount_in * p0
    assert result.fee > 0
    assert result.tick_after == pool.tick
    assert not result.truncated


def test_reverse_swap_does_not_overshoot_original_price():
    """Buying back with the proceeds of a sell never lifts price above where it started."""
    pool = make_pool()
    p0 = pool.price
    for _ in range(5):
        sold = pool.swap(1000.0, zero_for_one=True)
        pool.swap(sold.amount_out, zero_for_one=False)
        assert pool.price <= p0 * (1 + 1e-12), f"price {pool.price} overshot {p0}"


def test_non_positive_input_is_noop():
    pool = make_pool()
    p0 = pool.price
    for amount in (0.0, -5.0):
        result = pool.swap(amount, zero_for_one=False)
        assert result.amount_in == 0 and result.amount_out == 0
    assert pool.price == p0


def test_swap_without_any_liquidity_is_noop():
    pool = LiquidityPool("EMPTY")
    result = pool.swap(100.0, zero_for_one=True)
    assert result.amount_out == 0.0
    assert result.amount_in == 0.0


def test_large_sell_drains_range_then_buy_bridges_back():
    pool = make_pool()
    lower = pool.positions[0].tick_lower
    result = pool.swap(1e9, zero_for_one=True)

    assert result.amount_in < 1e9, "only what the range can absorb is consumed"
    assert result.amount_out < 50_000
    assert pool.liquidity == 0
    assert pool.tick == lower - 1

    back = pool.swap(100.0, zero_for_one=False)
    assert back.amount_out > 0
    assert pool.liquidity > 0
    assert pool.tick >= lower


def test_iteration_cap_returns_partial_fill():
    pool = make_ladder_pool(rungs=80)
    result = pool.swap(1e12, zero_for_one=True)
    assert result.truncated
    assert 0 < result.amount_in < 1e12
    assert result.amount_out > 0
    assert pool.tick > -60 * 80, f"walk went past {MAX_SWAP_ITERATIONS} legs"


def test_empty_position_range_is_rejected():
    pool = make_pool()
    positions, liquidity = list(pool.positions), pool.liquidity
    for lower, upper in ((60, 60), (120, 60)):
        with pytest.raises(InvalidInput):
            pool.add_position(lower, upper, 1.0)
    assert pool.positions == positions
    assert pool.liquidity == liquidity


# ── Observation ──────────────────────────────────────────────────────────────

def test_snapshot_records_and_resets_step_accumulators():
    pool = make_pool()
    pool.swap(500.0, zero_for_one=True)
    pool.swap(100.0, zero_for_one=False)
    first = pool.snapshot(0)
    assert first.volume0 > 0 and first.volume1 > 0
    assert first.fee0 > 0 and first.fee1 > 0

    second = pool.snapshot(1)
    assert (second.volume0, second.volume1, second.fee0, second.fee1) == (0.0, 0.0, 0.0, 0.0)
    assert [s.t for s in pool.snapshots] == [0, 1]

    d = second.to_dict()
    assert isinstance(d["sqrt_price_x96"], str)
    assert int(d["sqrt_price_x96"]) > 0


def test_depth_is_centered_and_read_only():
    pool = make_pool()
    before = (pool.price, pool.tick, pool.liquidity)
    buckets = pool.depth(20)
    assert len(buckets) == 21
    assert all(b.tick_lower % pool.tick_spacing == 0 for b in buckets)
    assert all(b.tick_upper - b.tick_lower == pool.tick_spacing for b in buckets)
    center = buckets[10]
    assert math.isclose(center.liquidity, pool.liquidity, rel_tol=1e-12)
    assert (pool.price, pool.tick, pool.liquidity) == before
    assert LiquidityPool("EMPTY").depth(20) == []
