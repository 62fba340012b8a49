"""
Replays one synthetic demand pool through four token-sale mechanisms and scores them.

Every mechanism sees the same participants (same wealth, desired size, speed and
retail flag), so differences in the metrics come from the allocation rule alone:

  • batch_auction: the cleared uniform-price auction, winning fills handed to participants
  • fcfs:          fixed price at 70% of fair, fastest wallets first
  • whitelist:     fixed price at 80% of fair, 40% of participants drawn at random, equal slot cap
  • dutch:         price falls linearly from 3x to 0.3x fair, bidders enter at a private target

Fair price is the auction's clearing price and supply is what the auction actually filled.
"""
import logging
import math
from typing import Dict, List

import numpy as np

from launch_sim.models import (
    AuctionResult,
    ComparisonResult,
    ICOAllocation,
    ICOMetrics,
    Participant,
    RadarScores,
)


logger = logging.getLogger(__name__)

MIN_PARTICIPANTS = 80

# Participant pool
WEALTH_LOG_MEAN = 8.0          # exp(8) ≈ $2980
WEALTH_LOG_STD = 2.0
WEALTH_FLOOR = 50.0
DESIRED_FRAC_MIN = 0.001
DESIRED_FRAC_SPAN = 0.04
SPEED_LOG_SCALE = 14.0
SPEED_NOISE = 0.1

# Mechanisms
FCFS_DISCOUNT = 0.70
FCFS_SPEED_NOISE = 0.05
WHITELIST_DISCOUNT = 0.80
WHITELIST_SHARE = 0.40
DUTCH_START = 3.0
DUTCH_END = 0.30
DUTCH_STEPS = 100
DUTCH_RETAIL_TARGET = 0.8      # retail waits for a discount
DUTCH_WHALE_TARGET = 1.1       # whales bid early to make sure they get filled
DUTCH_TARGET_NOISE = 0.15
DUTCH_TARGET_MIN = 0.35
DUTCH_TARGET_MAX = 2.5

# Metrics
DUMP_DISCOUNT = 0.05
WHALE_DECILE = 0.10
BOT_ADVANTAGE_NO_RETAIL = 5.0

# Independent generator streams, one per concern
_STREAM_PARTICIPANTS = 7777
_STREAM_FCFS = 1111
_STREAM_WHITELIST = 2222
_STREAM_DUTCH = 3333

MODEL_LABELS = {
    "batch_auction": "Batch Auction (PT/RT split)",
    "fcfs": "FCFS (Fixed Price)",
    "whitelist": "Whitelist Sale",
    "dutch": "Dutch Auction",
}


def _round_half_up(x: float) -> float:
    return float(math.floor(x + 0.5))


def _empty(p: Participant) -> ICOAllocation:
    return ICOAllocation(participant_id=p.id, tokens=0.0, price_paid=0.0, spent=0.0, refunded=0.0, is_retail=p.is_retail)


def _filled(p: Participant, tokens: float, price: float, refunded: float = 0.0) -> ICOAllocation:
    return ICOAllocation(
        participant_id=p.id,
        tokens=tokens,
        price_paid=price,
        spent=tokens * price,
        refunded=refunded,
        is_retail=p.is_retail,
    )


# =============================================================================
# Participant pool
# =============================================================================

def generate_participants(count: int, total_supply: float, seed: int = 42) -> List[Participant]:
    """
    Log-normal wealth; desired size drawn independently and then handed out by
    wealth rank so whales want more; speed grows with log-wealth plus noise.
    The bottom half by desired size is retail.
    """
    rng = np.random.default_rng([seed, _STREAM_PARTICIPANTS])
    log_wealth = rng.normal(WEALTH_LOG_MEAN, WEALTH_LOG_STD, size=count)
    wealth = np.maximum(WEALTH_FLOOR, np.exp(log_wealth))

    desired_frac = np.sort(DESIRED_FRAC_MIN + rng.random(count) * DESIRED_FRAC_SPAN)
    desired = np.empty(count)
    desired[np.argsort(wealth, kind="stable")] = desired_frac * total_supply

    speed = np.clip(log_wealth / SPEED_LOG_SCALE + rng.normal(0.0, SPEED_NOISE, size=count), 0.0, 1.0)

    median = float(np.sort(desired)[count // 2])
    return [
        Participant(
            id=i,
            wealth=float(wealth[i]),
            desired_tokens=float(desired[i]),
            speed=float(speed[i]),
            is_retail=bool(desired[i] <= median),
        )
        for i in range(count)
    ]


# =============================================================================
# Mechanisms
# =============================================================================

def allocate_batch_auction(auction: AuctionResult, participants: List[Participant]) -> List[ICOAllocation]:
    """Hand winning fills to participants by size rank, smallest fill to smallest appetite."""
    fills = sorted(auction.winners, key=lambda o: o.filled)
    by_size = sorted(participants, key=lambda p: (p.desired_tokens, p.id))
    assigned: Dict[int, ICOAllocation] = {}
    for outcome, p in zip(fills, by_size):
        cost = outcome.filled * auction.clearing_price
        assigned[p.id] = _filled(p, outcome.filled, auction.clearing_price, refunded=outcome.deposit - cost)
    return [assigned.get(p.id) or _empty(p) for p in participants]


def allocate_fcfs(participants: List[Participant], fair_price: float, total_supply: float, seed: int = 42) -> List[ICOAllocation]:
    rng = np.random.default_rng([seed, _STREAM_FCFS])
    price = fair_price * FCFS_DISCOUNT
    noisy = [p.speed + float(rng.normal(0.0, FCFS_SPEED_NOISE)) for p in participants]
    order = sorted(range(len(participants)), key=lambda i: -noisy[i])

    supply_left = total_supply
    assigned: Dict[int, ICOAllocation] = {}
    for i in order:
        p = participants[i]
        if supply_left <= 0:
            break
        tokens = max(0.0, min(p.desired_tokens, p.wealth / price, supply_left))
        supply_left -= tokens
        assigned[p.id] = _filled(p, tokens, price)
    return [assigned.get(p.id) or _empty(p) for p in participants]


def allocate_whitelist(participants: List[Participant], fair_price: float, total_supply: float, seed: int = 42) -> List[ICOAllocation]:
    rng = np.random.default_rng([seed, _STREAM_WHITELIST])
    price = fair_price * WHITELIST_DISCOUNT
    slots = max(1, int(len(participants) * WHITELIST_SHARE))
    per_slot = total_supply / slots
    whitelisted = {participants[i].id for i in rng.permutation(len(participants))[:slots]}

    out = []
    for p in participants:
        if p.id not in whitelisted:
            out.append(_empty(p))
            continue
        out.append(_filled(p, min(per_slot, p.wealth / price), price))
    return out


def allocate_dutch(participants: List[Participant], fair_price: float, total_supply: float, seed: int = 42) -> List[ICOAllocation]:
    rng = np.random.default_rng([seed, _STREAM_DUTCH])
    start = fair_price * DUTCH_START
    end = fair_price * DUTCH_END

    targets = []
    for p in participants:
        fomo = DUTCH_RETAIL_TARGET if p.is_retail else DUTCH_WHALE_TARGET
        multiple = min(DUTCH_TARGET_MAX, max(DUTCH_TARGET_MIN, fomo + float(rng.normal(0.0, DUTCH_TARGET_NOISE))))
        targets.append(fair_price * multiple)

    supply_left = total_supply
    assigned: Dict[int, ICOAllocation] = {}
    for step in range(DUTCH_STEPS):
        if supply_left <= 0:
            break
        price = start - (start - end) * (step / DUTCH_STEPS)
        for p, target in zip(participants, targets):
            if supply_left <= 0:
                break
            if p.id in assigned or target < price:
                continue
            tokens = min(p.desired_tokens, p.wealth / price, supply_left)
            if tokens > 0:
                assigned[p.id] = _filled(p, tokens, price)
                supply_left -= tokens
    return [assigned.get(p.id) or _empty(p) for p in participants]


# =============================================================================
# Metrics
# =============================================================================

def gini(values) -> float:
    """Gini coefficient over all holdings, zeros included. 0 is perfectly equal."""
    x = np.sort(np.asarray(values, dtype=float))
    n = len(x)
    if n == 0:
        return 0.0
    total = float(x.sum())
    if total <= 0:
        return 0.0
    ranks = np.arange(1, n + 1)
    g = float(np.sum((2 * ranks - n - 1) * x)) / (n * total)
    return min(1.0, max(0.0, g))


def _fill_rate(participants: List[Participant], holders: set) -> float:
    if not participants:
        return 0.0
    return sum(1 for p in participants if p.id in holders) / len(participants)


def compute_metrics(
    model: str,
    allocations: List[ICOAllocation],
    participants: List[Participant],
    fair_price: float,
    total_supply: float,
) -> ICOMetrics:
    winners = [a for a in allocations if a.tokens > 0]
    allocated = math.fsum(a.tokens for a in winners)
    raised = math.fsum(a.spent for a in allocations)
    refunded = math.fsum(a.refunded for a in allocations)
    deposited = raised + refunded

    sale_price = raised / allocated if allocated > 0 else fair_price

    by_id = {a.participant_id: a.tokens for a in allocations}
    g = gini([by_id.get(p.id, 0.0) for p in participants])

    top = sorted((a.tokens for a in winners), reverse=True)
    top_n = max(1, int(len(winners) * WHALE_DECILE))
    whale_capture = math.fsum(top[:top_n]) / allocated if allocated > 0 else 0.0

    holders = {a.participant_id for a in winners}
    retail_fill = _fill_rate([p for p in participants if p.is_retail], holders)
    whale_fill = _fill_rate([p for p in participants if not p.is_retail], holders)

    refund_rate = refunded / deposited if deposited > 0 else 0.0

    if fair_price > 0 and allocated > 0:
        dumped = math.fsum(a.tokens for a in winners if (fair_price - a.price_paid) / fair_price > DUMP_DISCOUNT)
        dump_risk = dumped / allocated
    else:
        dump_risk = 0.0

    if retail_fill > 0:
        bot_advantage = whale_fill / retail_fill
    else:
        bot_advantage = BOT_ADVANTAGE_NO_RETAIL if whale_fill > 0 else 1.0

    price_discovery = max(0.0, 100.0 - abs(sale_price - fair_price) / fair_price * 100.0) if fair_price > 0 else 0.0

    target_raise = fair_price * total_supply
    capital_efficiency = min(100.0, max(0.0, raised / target_raise * 100.0)) if target_raise > 0 else 0.0
    bot_resistance = max(0.0, min(100.0, (1.0 - min(1.0, (bot_advantage - 1.0) / 4.0)) * 100.0))

    radar = RadarScores(
        price_discovery=price_discovery,
        distribution_fairness=max(0.0, (1.0 - g) * 100.0),
        retail_access=_round_half_up(retail_fill * 100.0),
        capital_efficiency=_round_half_up(capital_efficiency),
        dump_resistance=_round_half_up(max(0.0, (1.0 - dump_risk) * 100.0)),
        bot_resistance=_round_half_up(bot_resistance),
    )
    return ICOMetrics(
        model=model,
        label=MODEL_LABELS[model],
        sale_price=sale_price,
        total_raised=raised,
        gini=g,
        whale_capture=whale_capture,
        retail_fill_rate=retail_fill,
        refund_rate=refund_rate,
        day1_dump_risk=dump_risk,
        bot_advantage=bot_advantage,
        price_discovery=price_discovery,
        radar=radar,
    )


def run_comparison(auction: AuctionResult, seed: int = 42) -> ComparisonResult:
    fair_price = auction.clearing_price
    total_supply = auction.total_filled
    count = max(len(auction.outcomes), MIN_PARTICIPANTS)
    participants = generate_participants(count, total_supply, seed)

    allocations = {
        "batch_auction": allocate_batch_auction(auction, participants),
        "fcfs": allocate_fcfs(participants, fair_price, total_supply, seed),
        "whitelist": allocate_whitelist(participants, fair_price, total_supply, seed),
        "dutch": allocate_dutch(participants, fair_price, total_supply, seed),
    }
    models = [
        compute_metrics(model, allocs, participants, fair_price, total_supply)
        for model, allocs in allocations.items()
    ]
    for m in models:
        logger.debug("%s: price %.6g gini %.3f retail fill %.2f", m.model, m.sale_price, m.gini, m.retail_fill_rate)
    logger.info("compared %d mechanisms over %d participants", len(models), count)
    return ComparisonResult(fair_price=fair_price, participant_count=count, models=models)
