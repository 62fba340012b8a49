"""
One full launch scenario, start to finish:

    auction -> vault split -> pool seeding -> trading -> settlement -> sensitivity -> comparison

Runs are synchronous and self-contained: every run builds its own pools, agents
and generators, so identical configs give identical results and independent
runs can be fanned out across processes (`run_sweep`).
"""
import json
import logging
from concurrent.futures import ProcessPoolExecutor
from typing import Any, Dict, List, Optional, Sequence

from launch_sim.errors import InvalidInput
from launch_sim.models import PoolHistory, SimulationResult
from launch_sim.schemas import ScenarioConfig, build_config, reference_scenario
from launch_sim.services.auction import run_auction
from launch_sim.services.comparison import run_comparison
from launch_sim.services.pool import LiquidityPool
from launch_sim.services.settlement import sensitivity, settle
from launch_sim.services.traders import TradingParams, run_traders
from launch_sim.services.vault import split_allocations


logger = logging.getLogger(__name__)

DEPTH_BUCKETS = 20

# PT opens at the clearing price; liquidity over [0.5x, 4x] clearing,
# funded 60% cash / 40% tokens out of half the bootstrap amount.
PT_RANGE = (0.5, 4.0)
PT_QUOTE_SHARE = 0.60
PT_BASE_SHARE = 0.40

# RT opens near zero (pure upside) at 0.1x clearing, range [0.05x, 2x],
# funded almost entirely in cash.
RT_OPEN_MULT = 0.1
RT_RANGE = (0.05, 2.0)
RT_QUOTE_SHARE = 0.95
RT_BASE_SHARE = 0.05


def seed_pools(clearing_price: float, bootstrap: float):
    half = bootstrap / 2
    pt_pool = LiquidityPool("PT")
    pt_pool.seed(
        clearing_price,
        clearing_price * PT_RANGE[0],
        clearing_price * PT_RANGE[1],
        quote_amount=half * PT_QUOTE_SHARE,
        base_amount=half * PT_BASE_SHARE / clearing_price,
    )

    rt_open = clearing_price * RT_OPEN_MULT
    rt_pool = LiquidityPool("RT")
    rt_pool.seed(
        rt_open,
        clearing_price * RT_RANGE[0],
        clearing_price * RT_RANGE[1],
        quote_amount=half * RT_QUOTE_SHARE,
        base_amount=half * RT_BASE_SHARE / rt_open,
    )
    return pt_pool, rt_pool


def run_scenario(config: Any = None) -> SimulationResult:
    """Run one scenario. Accepts a ScenarioConfig, a plain mapping, or None for the reference launch."""
    config = reference_scenario() if config is None else build_config(config)
    logger.info(
        "scenario start: supply=%g floor=%g bids=%d (%s) seed=%d",
        config.total_supply, config.floor_price, config.bid_count, config.bid_shape, config.seed,
    )

    auction = run_auction(config)
    vault = split_allocations(auction)

    pt_pool, rt_pool = seed_pools(auction.clearing_price, auction.liquidity_bootstrap)
    pt_pool.snapshot(-1)
    rt_pool.snapshot(-1)
    logger.info("pools seeded: %r, %r", pt_pool, rt_pool)

    traders, trades = run_traders(pt_pool, rt_pool, TradingParams(
        traders=config.traders,
        trading_days=config.trading_days,
        clearing_price=auction.clearing_price,
        cap_multiplier=config.cap_multiplier,
        tge_price=config.tge_price,
        seed=config.seed,
    ))

    pools = PoolHistory(
        pt=list(pt_pool.snapshots),
        rt=list(rt_pool.snapshots),
        depth_pt=pt_pool.depth(DEPTH_BUCKETS),
        depth_rt=rt_pool.depth(DEPTH_BUCKETS),
    )

    result = SimulationResult(
        config=config,
        auction=auction,
        vault=vault,
        pools=pools,
        trades=trades,
        traders=traders,
        settlement=settle(auction, config),
        sensitivity=sensitivity(auction, config),
        comparison=run_comparison(auction, config.seed),
    )
    logger.info("scenario done: %d trades, payout/RT %.6g", len(trades), result.settlement.payout_per_claim)
    return result


def run_sweep(
    base: Any,
    parameter: str,
    values: Sequence[Any],
    max_workers: Optional[int] = None,
) -> List[SimulationResult]:
    """
    Run `base` once per value of `parameter`, in parallel processes.

    Every config is validated before anything runs, so a bad value fails the
    whole sweep with InvalidConfig. Results come back in the order of `values`.
    """
    base = reference_scenario() if base is None else build_config(base)
    if parameter not in ScenarioConfig.model_fields:
        raise InvalidInput(f"unknown scenario parameter: {parameter!r}")
    configs = [build_config(base, **{parameter: v}) for v in values]
    logger.info("sweep over %s: %d runs", parameter, len(configs))

    if max_workers == 1 or len(configs) <= 1:
        return [run_scenario(c) for c in configs]
    with ProcessPoolExecutor(max_workers=max_workers) as pool:
        futures = [pool.submit(run_scenario, c) for c in configs]
        return [f.result() for f in futures]


def summarize(result: SimulationResult) -> Dict[str, Any]:
    """Headline numbers of a run."""
    return {
        "clearing_price": result.auction.clearing_price,
        "fill_ratio": result.auction.fill_ratio,
        "clearing_tier_ratio": result.auction.clearing_tier_ratio,
        "amount_raised": result.auction.amount_raised,
        "liquidity_bootstrap": result.auction.liquidity_bootstrap,
        "winners": len(result.auction.winners),
        "pt_snapshots": len(result.pools.pt),
        "rt_snapshots": len(result.pools.rt),
        "final_pt_price": result.pools.pt[-1].price if result.pools.pt else None,
        "final_rt_price": result.pools.rt[-1].price if result.pools.rt else None,
        "total_trades": len(result.trades),
        "trader_count": len(result.traders),
        "settlement": {
            "payout_per_claim": result.settlement.payout_per_claim,
            "pro_rata_factor": result.settlement.pro_rata_factor,
        },
        "sensitivity_points": len(result.sensitivity),
    }


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    print(json.dumps(summarize(run_scenario()), indent=2))
