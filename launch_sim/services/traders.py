"""
Multi-agent trading loop over the PT and RT pools.

Time is discrete: `steps_per_day * trading_days` steps. Every step each agent,
in a fixed order (random, then momentum, then arbitrage; by index inside an
archetype), gets one chance to decide and execute a swap. After all agents have
acted, every agent's P&L is marked to pool prices and appended, and both pools
are snapshotted, so all series are step-aligned.

Each agent draws from its own generator seeded by (seed, archetype, index), so
adding agents of one archetype never changes what the others do on their own.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from launch_sim.models import TradeEvent, TradeOrder, TraderState, TraderSummary
from launch_sim.schemas import TraderMix
from launch_sim.services.pool import LiquidityPool


logger = logging.getLogger(__name__)

STEPS_PER_DAY = 24
START_CASH = 100_000.0
START_PT = 10_000.0
START_RT = 10_000.0

# Order size band, in multiples of the opening PT price.
TRADE_SIZE_MIN_MULT = 10.0
TRADE_SIZE_MAX_MULT = 500.0

# No single order may spend more than this share of the balance it draws on.
BALANCE_CAP_FRAC = 0.10


@dataclass(frozen=True)
class TradingParams:
    traders: TraderMix
    trading_days: int
    clearing_price: float
    cap_multiplier: float
    tge_price: float
    seed: int
    steps_per_day: int = STEPS_PER_DAY

    @property
    def total_steps(self) -> int:
        return self.trading_days * self.steps_per_day


@dataclass(frozen=True)
class MarketContext:
    """What an agent can see when it decides. Histories are read-only views."""
    t: int
    pt_price: float
    rt_price: float
    pt_history: Sequence[float]
    rt_history: Sequence[float]
    min_trade: float
    max_trade: float

    def size_between(self, fraction: float) -> float:
        return self.min_trade + fraction * (self.max_trade - self.min_trade)


# =============================================================================
# Archetypes
# =============================================================================

class TraderStrategy:
    archetype = ""

    def __init__(self, rng: np.random.Generator):
        self.rng = rng

    def decide(self, state: TraderState, ctx: MarketContext) -> Optional[TradeOrder]:
        raise NotImplementedError


class RandomTrader(TraderStrategy):
    """Coin-flip participation, uniform pool, direction and size."""

    archetype = "random"
    ACT_PROB = 0.5

    def decide(self, state, ctx):
        if self.rng.random() >= self.ACT_PROB:
            return None
        pool = "PT" if self.rng.random() < 0.5 else "RT"
        zero_for_one = bool(self.rng.random() < 0.5)
        return TradeOrder(pool=pool, zero_for_one=zero_for_one, amount_in=ctx.size_between(float(self.rng.random())))


class MomentumTrader(TraderStrategy):
    """Follows the stronger 3-step move, sized by conviction, mostly holding back."""

    archetype = "momentum"
    LOOKBACK = 3
    DEAD_ZONE = 0.005
    CONVICTION_SCALE = 10.0
    SUPPRESS_PROB = 0.7

    @classmethod
    def relative_move(cls, history: Sequence[float]) -> float:
        past = history[-1 - cls.LOOKBACK]
        if past <= 0:
            return 0.0
        return (history[-1] - past) / past

    def decide(self, state, ctx):
        if len(ctx.pt_history) < self.LOOKBACK + 1 or len(ctx.rt_history) < self.LOOKBACK + 1:
            return None

        pt_move = self.relative_move(ctx.pt_history)
        rt_move = self.relative_move(ctx.rt_history)
        pool, move = ("PT", pt_move) if abs(pt_move) >= abs(rt_move) else ("RT", rt_move)
        if abs(move) < self.DEAD_ZONE:
            return None

        conviction = min(abs(move) * self.CONVICTION_SCALE, 1.0)
        amount_in = ctx.size_between(conviction)

        # herding damper
        if self.rng.random() < self.SUPPRESS_PROB:
            return None
        return TradeOrder(pool=pool, zero_for_one=move < 0, amount_in=amount_in)


class ArbitrageTrader(TraderStrategy):
    """Trades whichever pool sits furthest from its theoretical value."""

    archetype = "arbitrage"
    THRESHOLD = 0.02
    SIZE_SCALE = 5.0
    RT_UNCERTAINTY_DISCOUNT = 0.8

    def __init__(self, rng: np.random.Generator, clearing_price: float, cap_multiplier: float, tge_price: float):
        super().__init__(rng)
        self.pt_fair, self.rt_fair = self.fair_values(clearing_price, cap_multiplier, tge_price)

    @classmethod
    def fair_values(cls, clearing_price: float, cap_multiplier: float, tge_price: float) -> Tuple[float, float]:
        effective = min(tge_price, clearing_price * cap_multiplier)
        rt_fair = max(0.0, effective - clearing_price) * cls.RT_UNCERTAINTY_DISCOUNT
        return clearing_price, rt_fair

    def decide(self, state, ctx):
        deviations: Dict[str, float] = {}
        for pool, price, fair in (("PT", ctx.pt_price, self.pt_fair), ("RT", ctx.rt_price, self.rt_fair)):
            # no fair value, no signal
            if fair > 0:
                deviations[pool] = (price - fair) / fair
        if not deviations:
            return None

        pool = max(deviations, key=lambda k: abs(deviations[k]))
        dev = deviations[pool]
        if abs(dev) <= self.THRESHOLD:
            return None

        scale = min(abs(dev) * self.SIZE_SCALE, 1.0)
        amount_in = ctx.min_trade + float(self.rng.random()) * (ctx.max_trade - ctx.min_trade) * scale
        return TradeOrder(pool=pool, zero_for_one=dev > 0, amount_in=amount_in)


ARCHETYPE_ORDER = ("random", "momentum", "arbitrage")


def _agent_rng(seed: int, archetype: str, index: int) -> np.random.Generator:
    return np.random.default_rng([seed, ARCHETYPE_ORDER.index(archetype), index])


def build_agents(params: TradingParams) -> List[Tuple[TraderState, TraderStrategy]]:
    counts = {
        "random": params.traders.random,
        "momentum": params.traders.momentum,
        "arbitrage": params.traders.arbitrage,
    }
    agents = []
    next_id = 0
    for archetype in ARCHETYPE_ORDER:
        for i in range(counts[archetype]):
            rng = _agent_rng(params.seed, archetype, i)
            if archetype == "random":
                strategy = RandomTrader(rng)
            elif archetype == "momentum":
                strategy = MomentumTrader(rng)
            else:
                strategy = ArbitrageTrader(rng, params.clearing_price, params.cap_multiplier, params.tge_price)
            state = TraderState(
                id=next_id,
                archetype=archetype,
                cash=START_CASH,
                pt_balance=START_PT,
                rt_balance=START_RT,
            )
            agents.append((state, strategy))
            next_id += 1
    return agents


# =============================================================================
# Execution
# =============================================================================

def _mark_to_market(state: TraderState, pt_price: float, rt_price: float) -> float:
    return state.cash + state.pt_balance * pt_price + state.rt_balance * rt_price


def _credit_token(state: TraderState, pool: str, delta: float) -> None:
    if pool == "PT":
        state.pt_balance += delta
    else:
        state.rt_balance += delta


def execute_order(state: TraderState, order: TradeOrder, pool: LiquidityPool, t: int) -> Optional[TradeEvent]:
    """Clamp, swap and book one order. Returns None when nothing traded."""
    balance = state.balance_of(order.pool) if order.zero_for_one else state.cash
    amount_in = min(order.amount_in, balance * BALANCE_CAP_FRAC)
    if not amount_in > 0:
        return None

    price_before = pool.price
    result = pool.swap(amount_in, order.zero_for_one)
    if result.amount_out <= 0:
        return None

    if order.zero_for_one:
        _credit_token(state, order.pool, -result.amount_in)
        state.cash += result.amount_out
        pnl_delta = result.amount_out - result.amount_in * price_before
    else:
        state.cash -= result.amount_in
        _credit_token(state, order.pool, result.amount_out)
        pnl_delta = result.amount_out * pool.price - result.amount_in

    event = TradeEvent(
        t=t,
        trader_id=state.id,
        archetype=state.archetype,
        pool=order.pool,
        direction="sell" if order.zero_for_one else "buy",
        amount_in=result.amount_in,
        amount_out=result.amount_out,
        fee=result.fee,
        price=pool.price,
        pnl_delta=pnl_delta,
    )
    state.trades.append(event)
    return event


def run_traders(
    pt_pool: LiquidityPool,
    rt_pool: LiquidityPool,
    params: TradingParams,
) -> Tuple[List[TraderSummary], List[TradeEvent]]:
    pools = {"PT": pt_pool, "RT": rt_pool}
    agents = build_agents(params)

    min_trade = pt_pool.price * TRADE_SIZE_MIN_MULT
    max_trade = pt_pool.price * TRADE_SIZE_MAX_MULT
    start_value = START_CASH + START_PT * pt_pool.price + START_RT * rt_pool.price

    pt_history: List[float] = [pt_pool.price]
    rt_history: List[float] = [rt_pool.price]
    trades: List[TradeEvent] = []

    for t in range(params.total_steps):
        for state, strategy in agents:
            ctx = MarketContext(
                t=t,
                pt_price=pt_pool.price,
                rt_price=rt_pool.price,
                pt_history=pt_history,
                rt_history=rt_history,
                min_trade=min_trade,
                max_trade=max_trade,
            )
            order = strategy.decide(state, ctx)
            if order is None:
                continue
            event = execute_order(state, order, pools[order.pool], t)
            if event is not None:
                trades.append(event)

        for state, _ in agents:
            state.pnl_history.append(_mark_to_market(state, pt_pool.price, rt_pool.price) - start_value)

        pt_history.append(pt_pool.price)
        rt_history.append(rt_pool.price)
        pt_pool.snapshot(t)
        rt_pool.snapshot(t)

    logger.info(
        "trading finished: %d agents, %d steps, %d trades (PT %.6g, RT %.6g)",
        params.traders.total, params.total_steps, len(trades), pt_pool.price, rt_pool.price,
    )

    summaries = [
        TraderSummary(
            id=state.id,
            archetype=state.archetype,
            final_pnl=state.pnl_history[-1] if state.pnl_history else 0.0,
            total_volume=math.fsum(e.amount_in for e in state.trades),
            trade_count=len(state.trades),
            pnl_history=list(state.pnl_history),
        )
        for state, _ in agents
    ]
    return summaries, trades
