"""
Concentrated-liquidity pool for one claim/cash pair.

State:
  • `sqrt_price` (S) and `tick` with the invariant tick_to_price(tick) <= S² < tick_to_price(tick + 1),
    except right after a downward crossing where tick = boundary - 1 and S sits on the boundary.
  • `ticks` is a sorted map boundary → net liquidity delta, applied when crossing **upward**
    (subtracted when crossing downward).
  • `liquidity` is the active liquidity: the sum of positions with lower <= tick < upper.

Swaps walk from boundary to boundary. Each leg is one closed-form `swap_step`; when a leg
reaches its boundary the tick is crossed and the walk continues with what is left. The walk is
capped at MAX_SWAP_ITERATIONS legs; hitting the cap returns the partial fill.

Per-step volume/fee accumulators are reset only by `snapshot`, so one snapshot per simulated
step records everything that traded during it.
"""
from __future__ import annotations

import logging
import math
from bisect import bisect_right, insort
from typing import Dict, List, Optional

from launch_sim.errors import InvalidInput, IterationLimitExceeded
from launch_sim.models import LiquidityPosition, PoolSnapshot, SwapResult, TickBucket
from launch_sim.services.price_math import (
    liquidity_from_amounts,
    price_to_sqrt,
    price_to_sqrt_price_x96,
    price_to_tick,
    swap_step,
    tick_to_price,
    tick_to_sqrt_price,
)


logger = logging.getLogger(__name__)

DEFAULT_FEE_PIPS = 3000      # 0.30%
DEFAULT_TICK_SPACING = 60    # standard spacing for the 0.30% tier
MAX_SWAP_ITERATIONS = 50
MIN_TICK = -887272
MAX_TICK = 887272

# Amounts/liquidity below these are float residue.
EPS_AMOUNT = 1e-12
EPS_LIQ = 1e-9


# =============================================================================
# Sorted tick map
# =============================================================================

class TickMap:
    """
    Initialized boundaries kept in sorted order next to their net liquidity.

    Lookups of the next boundary in either direction are O(log n) bisects, so
    crossing order is deterministic regardless of insertion order.
    """

    def __init__(self):
        self._net: Dict[int, float] = {}
        self._ticks: List[int] = []

    def add(self, tick: int, delta: float) -> None:
        if tick not in self._net:
            insort(self._ticks, tick)
            self._net[tick] = 0.0
        self._net[tick] += delta

    def net(self, tick: int) -> float:
        return self._net.get(tick, 0.0)

    def next_above(self, tick: int) -> Optional[int]:
        i = bisect_right(self._ticks, tick)
        return self._ticks[i] if i < len(self._ticks) else None

    def next_at_or_below(self, tick: int) -> Optional[int]:
        i = bisect_right(self._ticks, tick) - 1
        return self._ticks[i] if i >= 0 else None

    def items(self):
        return [(t, self._net[t]) for t in self._ticks]

    def __len__(self) -> int:
        return len(self._ticks)

    def __contains__(self, tick: int) -> bool:
        return tick in self._net


# =============================================================================
# Pool
# =============================================================================

class LiquidityPool:
    def __init__(self, label: str, fee_pips: int = DEFAULT_FEE_PIPS, tick_spacing: int = DEFAULT_TICK_SPACING):
        self.label = label
        self.fee_pips = fee_pips
        self.tick_spacing = tick_spacing

        self.sqrt_price = 0.0
        self.tick = 0
        self.liquidity = 0.0

        self.positions: List[LiquidityPosition] = []
        self.active_positions: List[int] = []   # indices into `positions`
        self.ticks = TickMap()

        self.step_volume0 = 0.0
        self.step_volume1 = 0.0
        self.step_fee0 = 0.0
        self.step_fee1 = 0.0

        self.snapshots: List[PoolSnapshot] = []

    def __repr__(self) -> str:
        return f"LiquidityPool({self.label!r}, price={self.price:.6g}, tick={self.tick}, L={self.liquidity:.6g})"

    @property
    def price(self) -> float:
        return self.sqrt_price * self.sqrt_price

    @property
    def fee_rate(self) -> float:
        return self.fee_pips / 1_000_000

    # ----- spacing helpers -----
    def _floor_tick(self, tick: int) -> int:
        return (tick // self.tick_spacing) * self.tick_spacing

    def _ceil_tick(self, tick: int) -> int:
        return -((-tick) // self.tick_spacing) * self.tick_spacing

    # ----- liquidity book -----
    def seed(
        self,
        initial_price: float,
        lower_price: float,
        upper_price: float,
        quote_amount: float,
        base_amount: float,
    ) -> LiquidityPosition:
        """Set the starting price and deposit one position over [lower_price, upper_price)."""
        self.sqrt_price = price_to_sqrt(initial_price)
        self.tick = price_to_tick(initial_price)

        tick_lower = self._floor_tick(price_to_tick(lower_price))
        tick_upper = self._ceil_tick(price_to_tick(upper_price))
        if tick_upper <= tick_lower:
            tick_upper = tick_lower + self.tick_spacing

        L = liquidity_from_amounts(initial_price, lower_price, upper_price, base_amount, quote_amount)
        position = self.add_position(tick_lower, tick_upper, L)
        logger.debug(
            "seeded %s at %.6g: ticks [%d, %d) L=%.6g", self.label, initial_price, tick_lower, tick_upper, L
        )
        return position

    def add_position(self, tick_lower: int, tick_upper: int, liquidity: float) -> LiquidityPosition:
        if not tick_lower < tick_upper:
            raise InvalidInput(f"position range must be non-empty, got [{tick_lower}, {tick_upper})")
        position = LiquidityPosition(tick_lower=tick_lower, tick_upper=tick_upper, liquidity=liquidity)
        self.positions.append(position)
        self.ticks.add(tick_lower, liquidity)
        self.ticks.add(tick_upper, -liquidity)
        if position.in_range(self.tick):
            self.liquidity += liquidity
        self._refresh_active()
        return position

    def _refresh_active(self) -> None:
        self.active_positions = [i for i, p in enumerate(self.positions) if p.in_range(self.tick)]

    def _next_boundary(self, zero_for_one: bool) -> Optional[int]:
        if zero_for_one:
            return self.ticks.next_at_or_below(self.tick)
        return self.ticks.next_above(self.tick)

    def _cross(self, boundary: int, zero_for_one: bool) -> None:
        net = self.ticks.net(boundary)
        if zero_for_one:
            self.liquidity -= net
            self.tick = boundary - 1
        else:
            self.liquidity += net
            self.tick = boundary
        if self.liquidity < EPS_LIQ:
            self.liquidity = 0.0
        self._refresh_active()

    # ----- swaps -----
    def _result(self, amount_in: float, amount_out: float, fee: float, truncated: bool = False) -> SwapResult:
        return SwapResult(
            amount_in=amount_in,
            amount_out=max(0.0, amount_out),
            fee=fee,
            price_after=self.price,
            tick_after=self.tick,
            truncated=truncated,
        )

    def swap(self, amount_in: float, zero_for_one: bool) -> SwapResult:
        """Exact-input swap. `zero_for_one` sells the claim token for cash (price falls).

        Non-positive input, or no liquidity reachable in the trade direction,
        returns a no-op result at the current price.
        """
        if not amount_in > 0:
            return self._result(0.0, 0.0, 0.0)
        if self.liquidity <= 0 and self._next_boundary(zero_for_one) is None:
            return self._result(0.0, 0.0, 0.0)

        try:
            result = self._swap_walk(amount_in, zero_for_one)
        except IterationLimitExceeded as exc:
            logger.warning(
                "%s swap of %.6g cut off after %d legs; returning partial fill",
                self.label, amount_in, exc.iterations,
            )
            result = exc.partial

        if zero_for_one:
            self.step_volume0 += result.amount_in
            self.step_volume1 += result.amount_out
            self.step_fee0 += result.fee
        else:
            self.step_volume1 += result.amount_in
            self.step_volume0 += result.amount_out
            self.step_fee1 += result.fee
        logger.debug(
            "%s swap zero_for_one=%s in=%.6g out=%.6g fee=%.6g -> price %.6g",
            self.label, zero_for_one, result.amount_in, result.amount_out, result.fee, result.price_after,
        )
        return result

    def _swap_walk(self, amount_in: float, zero_for_one: bool) -> SwapResult:
        remaining = amount_in
        total_out = 0.0
        total_fee = 0.0

        for _ in range(MAX_SWAP_ITERATIONS):
            if remaining <= EPS_AMOUNT:
                break

            boundary = self._next_boundary(zero_for_one)
            if boundary is None:
                if self.liquidity <= 0:
                    break
                boundary = MIN_TICK if zero_for_one else MAX_TICK
            target = tick_to_sqrt_price(boundary)
            # keep the leg pointed in the trade direction despite float residue
            target = min(target, self.sqrt_price) if zero_for_one else max(target, self.sqrt_price)

            if self.liquidity <= 0:
                # empty band: price moves to the next initialized boundary for free
                self.sqrt_price = target
                self._cross(boundary, zero_for_one)
                continue

            step = swap_step(self.sqrt_price, target, self.liquidity, remaining, self.fee_pips)
            remaining -= step.amount_in
            total_out += step.amount_out
            total_fee += step.fee
            self.sqrt_price = step.sqrt_price_after

            if not step.reached_target:
                tick = price_to_tick(self.price)
                if zero_for_one:
                    self.tick = min(max(tick, boundary), self.tick)
                else:
                    self.tick = max(min(tick, boundary - 1), self.tick)
                break
            if boundary in self.ticks:
                self._cross(boundary, zero_for_one)
            else:
                self.tick = boundary if not zero_for_one else boundary - 1
                break
        else:
            if remaining > EPS_AMOUNT:
                raise IterationLimitExceeded(
                    MAX_SWAP_ITERATIONS,
                    self._result(amount_in - remaining, total_out, total_fee, truncated=True),
                )

        return self._result(amount_in - max(remaining, 0.0), total_out, total_fee)

    # ----- observation -----
    def snapshot(self, t: int) -> PoolSnapshot:
        snap = PoolSnapshot(
            t=t,
            price=self.price,
            sqrt_price_x96=price_to_sqrt_price_x96(self.price) if self.price > 0 else 0,
            tick=self.tick,
            volume0=self.step_volume0,
            volume1=self.step_volume1,
            fee0=self.step_fee0,
            fee1=self.step_fee1,
            liquidity=self.liquidity,
        )
        self.snapshots.append(snap)
        self.step_volume0 = 0.0
        self.step_volume1 = 0.0
        self.step_fee0 = 0.0
        self.step_fee1 = 0.0
        return snap

    def liquidity_at(self, tick: int) -> float:
        return math.fsum(p.liquidity for p in self.positions if p.in_range(tick))

    def depth(self, bucket_count: int = 20) -> List[TickBucket]:
        """Liquidity per spacing-wide bucket around the current tick."""
        if not self.positions:
            return []
        half = bucket_count // 2
        buckets = []
        for i in range(-half, half + 1):
            tick = int(math.floor((self.tick + i * self.tick_spacing) / self.tick_spacing + 0.5)) * self.tick_spacing
            buckets.append(TickBucket(
                tick_lower=tick,
                tick_upper=tick + self.tick_spacing,
                price=tick_to_price(tick),
                liquidity=self.liquidity_at(tick),
            ))
        return buckets
