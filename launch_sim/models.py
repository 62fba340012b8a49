"""
Result value types produced by the simulation services.

Everything here is a plain dataclass. Types that are created once and only read
afterwards are frozen; `TraderState` is the one mutable record and is owned by
the trader loop.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from launch_sim.schemas import ScenarioConfig


# =============================================================================
# Auction
# =============================================================================

@dataclass(frozen=True)
class Bid:
    id: int
    quantity: float   # tokens requested
    price: float      # limit price, currency per token


@dataclass(frozen=True)
class BidOutcome:
    id: int
    quantity: float
    price: float
    filled: float
    refund: float
    is_winner: bool
    receipt_id: int = 0   # allocation receipt, 0 when nothing was filled

    @property
    def deposit(self) -> float:
        return self.quantity * self.price


@dataclass(frozen=True)
class AuctionResult:
    clearing_price: float
    fill_ratio: float
    clearing_tier_ratio: float   # share of each clearing-tier bid that was filled
    amount_raised: float
    liquidity_bootstrap: float
    total_filled: float
    eligible_demand: float
    outcomes: List[BidOutcome]

    @property
    def winners(self) -> List[BidOutcome]:
        return [o for o in self.outcomes if o.is_winner and o.filled > 0]


# =============================================================================
# Claim split
# =============================================================================

@dataclass(frozen=True)
class VaultAllocation:
    bidder_id: int
    receipt_id: int
    pt_minted: float
    rt_minted: float


@dataclass(frozen=True)
class VaultResult:
    allocations: List[VaultAllocation]
    total_pt: float
    total_rt: float


# =============================================================================
# Pools
# =============================================================================

@dataclass
class LiquidityPosition:
    tick_lower: int
    tick_upper: int
    liquidity: float

    def in_range(self, tick: int) -> bool:
        return self.tick_lower <= tick < self.tick_upper


@dataclass(frozen=True)
class SwapResult:
    amount_in: float
    amount_out: float
    fee: float
    price_after: float
    tick_after: int
    truncated: bool = False


@dataclass(frozen=True)
class PoolSnapshot:
    t: int
    price: float
    sqrt_price_x96: int
    tick: int
    volume0: float
    volume1: float
    fee0: float
    fee1: float
    liquidity: float

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        # Q64.96 values exceed float precision; ship them as decimal strings.
        out["sqrt_price_x96"] = str(self.sqrt_price_x96)
        return out


@dataclass(frozen=True)
class TickBucket:
    tick_lower: int
    tick_upper: int
    price: float
    liquidity: float


# =============================================================================
# Traders
# =============================================================================

@dataclass(frozen=True)
class TradeOrder:
    pool: str           # "PT" | "RT"
    zero_for_one: bool  # True sells the claim token for cash
    amount_in: float


@dataclass(frozen=True)
class TradeEvent:
    t: int
    trader_id: int
    archetype: str
    pool: str
    direction: str      # "buy" | "sell"
    amount_in: float
    amount_out: float
    fee: float
    price: float
    pnl_delta: float


@dataclass
class TraderState:
    id: int
    archetype: str
    cash: float
    pt_balance: float
    rt_balance: float
    pnl_history: List[float] = field(default_factory=list)
    trades: List[TradeEvent] = field(default_factory=list)

    def balance_of(self, pool: str) -> float:
        return self.pt_balance if pool == "PT" else self.rt_balance


@dataclass(frozen=True)
class TraderSummary:
    id: int
    archetype: str
    final_pnl: float
    total_volume: float
    trade_count: int
    pnl_history: List[float]


# =============================================================================
# Settlement
# =============================================================================

@dataclass(frozen=True)
class BidderSettlement:
    bidder_id: int
    auction_cost: float
    tokens_filled: float
    pt_value: float
    rt_payout: float
    net_pnl: float


@dataclass(frozen=True)
class SettlementResult:
    tge_price: float
    clearing_price: float
    cap_multiplier: float
    effective_price: float
    payout_per_claim: float
    total_liability: float
    reserve_used: float
    pro_rata_factor: float
    pt_redemption_rate: float
    bidder_settlements: List[BidderSettlement]


@dataclass(frozen=True)
class SensitivityPoint:
    tge_price: float
    payout_per_claim: float
    pro_rata_factor: float
    avg_bidder_pnl: float


# =============================================================================
# Mechanism comparison
# =============================================================================

@dataclass(frozen=True)
class Participant:
    id: int
    wealth: float
    desired_tokens: float
    speed: float
    is_retail: bool


@dataclass(frozen=True)
class ICOAllocation:
    participant_id: int
    tokens: float
    price_paid: float
    spent: float
    refunded: float
    is_retail: bool


@dataclass(frozen=True)
class RadarScores:
    price_discovery: float
    distribution_fairness: float
    retail_access: float
    capital_efficiency: float
    dump_resistance: float
    bot_resistance: float


@dataclass(frozen=True)
class ICOMetrics:
    model: str
    label: str
    sale_price: float
    total_raised: float
    gini: float
    whale_capture: float
    retail_fill_rate: float
    refund_rate: float
    day1_dump_risk: float
    bot_advantage: float
    price_discovery: float
    radar: RadarScores


@dataclass(frozen=True)
class ComparisonResult:
    fair_price: float
    participant_count: int
    models: List[ICOMetrics]

    def metrics_for(self, model: str) -> Optional[ICOMetrics]:
        return next((m for m in self.models if m.model == model), None)


# =============================================================================
# Full run
# =============================================================================

@dataclass(frozen=True)
class PoolHistory:
    pt: List[PoolSnapshot]
    rt: List[PoolSnapshot]
    depth_pt: List[TickBucket]
    depth_rt: List[TickBucket]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pt": [s.to_dict() for s in self.pt],
            "rt": [s.to_dict() for s in self.rt],
            "depth_pt": [asdict(b) for b in self.depth_pt],
            "depth_rt": [asdict(b) for b in self.depth_rt],
        }


@dataclass(frozen=True)
class SimulationResult:
    config: ScenarioConfig
    auction: AuctionResult
    vault: VaultResult
    pools: PoolHistory
    trades: List[TradeEvent]
    traders: List[TraderSummary]
    settlement: SettlementResult
    sensitivity: List[SensitivityPoint]
    comparison: ComparisonResult

    def to_dict(self) -> Dict[str, Any]:
        return {
            "config": self.config.model_dump(),
            "auction": asdict(self.auction),
            "vault": asdict(self.vault),
            "pools": self.pools.to_dict(),
            "trades": [asdict(t) for t in self.trades],
            "traders": [asdict(t) for t in self.traders],
            "settlement": asdict(self.settlement),
            "sensitivity": [asdict(p) for p in self.sensitivity],
            "comparison": asdict(self.comparison),
        }
