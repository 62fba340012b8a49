"""
Sealed-bid uniform-price batch auction.

Bids are generated from a seeded generator and cleared in one pass:

  1. bids priced below the floor are refunded in full;
  2. the rest are grouped into price tiers and walked from the highest tier down,
     accumulating quantity until cumulative demand covers the supply;
  3. that tier's price is the single clearing price everyone pays. Higher tiers fill
     in full, the clearing tier shares whatever supply is left pro rata;
  4. if demand never covers supply, the floor is the clearing price and every
     eligible bid fills in full.

Refund for every bid is `(bid - clearing) * qty + clearing * (qty - filled)`, so
`filled * clearing + refund == qty * bid` reconciles to the original deposit.
"""
from __future__ import annotations

import logging
import math
from itertools import groupby
from typing import List, Sequence

import numpy as np

from launch_sim.models import AuctionResult, Bid, BidOutcome
from launch_sim.schemas import ScenarioConfig


logger = logging.getLogger(__name__)

MAX_PRICE_MULTIPLE = 10.0       # bids range from floor to 10x floor
QTY_FRAC_MIN = 0.001            # 0.1% of supply
QTY_FRAC_MAX = 0.05             # 5% of supply
POWER_LAW_ALPHA = 1.5
POWER_LAW_SPAN = 0.9            # u in [0, 0.9] keeps the inverse CDF finite
LIQUIDITY_BOOTSTRAP_SHARE = 0.10


# =============================================================================
# Bid generation
# =============================================================================

def _draw_price(rng: np.random.Generator, shape: str, floor: float) -> float:
    ceiling = floor * MAX_PRICE_MULTIPLE
    u = float(rng.random())
    if shape == "uniform":
        return floor + u * (ceiling - floor)
    if shape == "power_law":
        # mass piles up near the floor, a thin tail reaches toward the ceiling
        price = floor * math.pow(1.0 - u * POWER_LAW_SPAN, -1.0 / POWER_LAW_ALPHA)
        return min(price, ceiling)
    # log_uniform
    return math.exp(math.log(floor) + u * (math.log(ceiling) - math.log(floor)))


def generate_bids(config: ScenarioConfig) -> List[Bid]:
    """Draw `bid_count` bids. Same seed, same bids; n bids are a prefix of n + 1."""
    rng = np.random.default_rng(config.seed)
    bids = []
    for i in range(config.bid_count):
        price = _draw_price(rng, config.bid_shape, config.floor_price)
        qty_frac = QTY_FRAC_MIN + float(rng.random()) * (QTY_FRAC_MAX - QTY_FRAC_MIN)
        bids.append(Bid(id=i, quantity=config.total_supply * qty_frac, price=price))
    return bids


# =============================================================================
# Clearing
# =============================================================================

def clear(bids: Sequence[Bid], config: ScenarioConfig) -> AuctionResult:
    supply = config.total_supply
    floor = config.floor_price

    eligible = [b for b in bids if b.price >= floor]
    # stable sort: equal prices keep submission order inside a tier
    ranked = sorted(eligible, key=lambda b: -b.price)
    eligible_demand = math.fsum(b.quantity for b in eligible)

    clearing_price = floor
    tier_ratio = 1.0
    covered = False
    above: List[float] = []
    cumulative = 0.0
    for price, tier_bids in groupby(ranked, key=lambda b: b.price):
        tier = [b.quantity for b in tier_bids]
        tier_qty = math.fsum(tier)
        if cumulative + tier_qty >= supply:
            clearing_price = price
            tier_ratio = min(1.0, (supply - cumulative) / tier_qty) if tier_qty > 0 else 1.0
            # rounding must never push the total past supply
            while tier_ratio > 0 and math.fsum(above + [q * tier_ratio for q in tier]) > supply:
                tier_ratio = math.nextafter(tier_ratio, 0.0)
            covered = True
            break
        above.extend(tier)
        cumulative = math.fsum(above)

    outcomes = []
    receipt = 1
    for bid in bids:
        if bid.price < floor or (covered and bid.price < clearing_price):
            filled = 0.0
        elif covered and bid.price == clearing_price:
            filled = bid.quantity * tier_ratio
        else:
            filled = bid.quantity

        if filled > 0:
            refund = (bid.price - clearing_price) * bid.quantity + clearing_price * (bid.quantity - filled)
            receipt_id = receipt
            receipt += 1
        else:
            refund = bid.quantity * bid.price
            receipt_id = 0
        outcomes.append(BidOutcome(
            id=bid.id,
            quantity=bid.quantity,
            price=bid.price,
            filled=filled,
            refund=max(0.0, refund),
            is_winner=filled > 0,
            receipt_id=receipt_id,
        ))

    total_filled = math.fsum(o.filled for o in outcomes)
    fill_ratio = min(1.0, supply / eligible_demand) if eligible_demand > 0 else 0.0
    amount_raised = total_filled * clearing_price
    logger.info(
        "auction cleared at %.6g: %d/%d winners, filled %.6g of %.6g (fill ratio %.4f)",
        clearing_price, receipt - 1, len(bids), total_filled, supply, fill_ratio,
    )
    return AuctionResult(
        clearing_price=clearing_price,
        fill_ratio=fill_ratio,
        clearing_tier_ratio=tier_ratio if covered else 1.0,
        amount_raised=amount_raised,
        liquidity_bootstrap=amount_raised * LIQUIDITY_BOOTSTRAP_SHARE,
        total_filled=total_filled,
        eligible_demand=eligible_demand,
        outcomes=outcomes,
    )


def run_auction(config: ScenarioConfig) -> AuctionResult:
    return clear(generate_bids(config), config)
