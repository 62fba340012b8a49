"""
Concentrated-liquidity price math.

Pool convention: token0 is the claim token (PT or RT), token1 is the cash
currency, and price is token1 per token0.

  • S := sqrt(P). Ticks sit on the geometric grid P_i = 1.0001^i.
  • Amounts held by liquidity L over [S_a, S_b] at price S:
        S <= S_a:        (L(1/S_a - 1/S_b), 0)
        S >= S_b:        (0, L(S_b - S_a))
        S_a < S < S_b:   (L(1/S - 1/S_b), L(S - S_a))
  • Fee is charged on input; the retained fraction moves the price.

These are total functions over positive finite reals. The tick round trip
`tick_to_price(price_to_tick(p))` is lossy by at most one tick (~0.01%).
"""
from __future__ import annotations

import math
from dataclasses import dataclass

from launch_sim.errors import InvalidInput


TICK_BASE = 1.0001
LOG_TICK_BASE = math.log(TICK_BASE)
Q96 = 2 ** 96
FEE_DENOMINATOR = 1_000_000


def _check_positive(value: float, name: str) -> None:
    try:
        v = float(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"{name} must be a number, got {value!r}") from None
    if not math.isfinite(v) or v <= 0:
        raise InvalidInput(f"{name} must be a positive finite number, got {value!r}")


# =============================================================================
# Price / sqrt / tick conversions
# =============================================================================

def price_to_sqrt(price: float) -> float:
    _check_positive(price, "price")
    return math.sqrt(price)


def sqrt_to_price(sqrt_price: float) -> float:
    _check_positive(sqrt_price, "sqrt_price")
    return sqrt_price * sqrt_price


def price_to_tick(price: float) -> int:
    _check_positive(price, "price")
    return math.floor(math.log(float(price)) / LOG_TICK_BASE)


def tick_to_price(tick: int) -> float:
    return TICK_BASE ** tick


def tick_to_sqrt_price(tick: int) -> float:
    return math.sqrt(tick_to_price(tick))


def price_to_sqrt_price_x96(price: float) -> int:
    """Q64.96 fixed-point sqrt price as an exact Python int."""
    return int(math.floor(price_to_sqrt(price) * Q96))


def sqrt_price_x96_to_price(sqrt_price_x96: int) -> float:
    if sqrt_price_x96 <= 0:
        raise InvalidInput(f"sqrt_price_x96 must be > 0, got {sqrt_price_x96!r}")
    s = sqrt_price_x96 / Q96
    return s * s


# =============================================================================
# Liquidity <-> amounts
# =============================================================================

def liquidity_from_amounts(
    price: float,
    price_lower: float,
    price_upper: float,
    amount0: float,
    amount1: float,
) -> float:
    """Liquidity supported by (amount0, amount1) over [price_lower, price_upper].

    In range the scarcer side binds; at or outside a boundary only one side
    counts.
    """
    for value, name in ((price, "price"), (price_lower, "price_lower"), (price_upper, "price_upper")):
        _check_positive(value, name)
    if price_upper <= price_lower:
        raise InvalidInput("price_upper must be above price_lower")

    s = math.sqrt(price)
    s_a = math.sqrt(price_lower)
    s_b = math.sqrt(price_upper)

    if price <= price_lower:
        return max(0.0, amount0) * (s_a * s_b) / (s_b - s_a)
    if price >= price_upper:
        return max(0.0, amount1) / (s_b - s_a)
    l0 = max(0.0, amount0) * (s * s_b) / (s_b - s)
    l1 = max(0.0, amount1) / (s - s_a)
    return min(l0, l1)


def amount0_from_liquidity(liquidity: float, price: float, price_upper: float) -> float:
    s = math.sqrt(min(price, price_upper))
    s_b = math.sqrt(price_upper)
    return liquidity * (s_b - s) / (s * s_b)


def amount1_from_liquidity(liquidity: float, price: float, price_lower: float) -> float:
    s = math.sqrt(max(price, price_lower))
    s_a = math.sqrt(price_lower)
    return liquidity * (s - s_a)


# =============================================================================
# Single-range swap step
# =============================================================================

@dataclass(frozen=True)
class SwapStep:
    sqrt_price_after: float
    amount_in: float    # gross, fee included
    amount_out: float
    fee: float
    reached_target: bool


def swap_step(
    sqrt_price: float,
    sqrt_price_target: float,
    liquidity: float,
    amount_remaining: float,
    fee_pips: int,
) -> SwapStep:
    """Exact-input swap inside one liquidity range, stopping at the target.

    Direction follows the target: a lower target sells token0 (price falls,
    S' = L·S / (L + Δ·S)); a higher target sells token1 (S' = S + Δ/L).
    """
    fee_rate = fee_pips / FEE_DENOMINATOR
    retained = 1.0 - fee_rate
    net_available = amount_remaining * retained

    if liquidity <= 0 or net_available <= 0:
        return SwapStep(sqrt_price, 0.0, 0.0, 0.0, False)

    zero_for_one = sqrt_price >= sqrt_price_target
    if zero_for_one:
        max_in = liquidity * (sqrt_price - sqrt_price_target) / (sqrt_price * sqrt_price_target)
        if net_available >= max_in:
            s_after, net_in, reached = sqrt_price_target, max_in, True
        else:
            s_after = liquidity * sqrt_price / (liquidity + net_available * sqrt_price)
            net_in, reached = net_available, False
        amount_out = liquidity * (sqrt_price - s_after)
    else:
        max_in = liquidity * (sqrt_price_target - sqrt_price)
        if net_available >= max_in:
            s_after, net_in, reached = sqrt_price_target, max_in, True
        else:
            s_after = sqrt_price + net_available / liquidity
            net_in, reached = net_available, False
        amount_out = liquidity * (s_after - sqrt_price) / (sqrt_price * s_after)

    fee = net_in * fee_rate / retained
    gross_in = net_in + fee
    if reached:
        # float drift must not let a step consume more than was offered
        gross_in = min(gross_in, amount_remaining)
    return SwapStep(
        sqrt_price_after=s_after,
        amount_in=gross_in,
        amount_out=max(0.0, amount_out),
        fee=fee,
        reached_target=reached,
    )
