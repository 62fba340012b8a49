import logging
from typing import List

import numpy as np

from launch_sim.models import AuctionResult, BidderSettlement, SensitivityPoint, SettlementResult
from launch_sim.schemas import ScenarioConfig


logger = logging.getLogger(__name__)

# TGE prices tried by the sensitivity sweep, as multiples of the clearing price
SENSITIVITY_MULTIPLES = [0.5, 1.0, 1.5, 2.0, 3.0, 4.0, 5.0, 7.0, 10.0]

# PT always redeems 1:1 for the launch token
PT_REDEMPTION_RATE = 1.0


def _compute(
    auction: AuctionResult,
    tge_price: float,
    cap_multiplier: float,
    reserve: float,
) -> SettlementResult:
    clearing = auction.clearing_price
    effective = min(tge_price, clearing * cap_multiplier)
    payout = max(0.0, effective - clearing)

    liability = auction.total_filled * payout
    if reserve >= liability:
        pro_rata = 1.0
    else:
        # liability > reserve >= 0 here, so the ratio stays below 1
        pro_rata = reserve / liability

    bidders: List[BidderSettlement] = []
    for outcome in auction.winners:
        cost = outcome.filled * clearing
        pt_value = outcome.filled * tge_price
        rt_payout = outcome.filled * payout * pro_rata
        bidders.append(BidderSettlement(
            bidder_id=outcome.id,
            auction_cost=cost,
            tokens_filled=outcome.filled,
            pt_value=pt_value,
            rt_payout=rt_payout,
            net_pnl=pt_value + rt_payout - cost,
        ))

    return SettlementResult(
        tge_price=tge_price,
        clearing_price=clearing,
        cap_multiplier=cap_multiplier,
        effective_price=effective,
        payout_per_claim=payout,
        total_liability=liability,
        reserve_used=min(liability, reserve),
        pro_rata_factor=pro_rata,
        pt_redemption_rate=PT_REDEMPTION_RATE,
        bidder_settlements=bidders,
    )


def settle(auction: AuctionResult, config: ScenarioConfig) -> SettlementResult:
    """
    Settle every winning allocation at the configured TGE price.

    RT pays `max(0, min(tge, clearing * cap) - clearing)` per claim. When the
    reserve cannot cover the total liability every payout is scaled down by the
    same pro-rata factor.
    """
    result = _compute(auction, config.tge_price, config.cap_multiplier, config.payout_reserve)
    logger.info(
        "settled %d bidders at TGE %.6g: payout/RT %.6g, liability %.6g, pro-rata %.4f",
        len(result.bidder_settlements), result.tge_price, result.payout_per_claim,
        result.total_liability, result.pro_rata_factor,
    )
    return result


def sensitivity(auction: AuctionResult, config: ScenarioConfig) -> List[SensitivityPoint]:
    points = []
    for mult in SENSITIVITY_MULTIPLES:
        result = _compute(auction, auction.clearing_price * mult, config.cap_multiplier, config.payout_reserve)
        pnl = [b.net_pnl for b in result.bidder_settlements]
        points.append(SensitivityPoint(
            tge_price=result.tge_price,
            payout_per_claim=result.payout_per_claim,
            pro_rata_factor=result.pro_rata_factor,
            avg_bidder_pnl=float(np.mean(pnl)) if pnl else 0.0,
        ))
    return points
