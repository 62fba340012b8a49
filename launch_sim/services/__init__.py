from launch_sim.services.auction import clear, generate_bids, run_auction
from launch_sim.services.comparison import run_comparison
from launch_sim.services.pool import LiquidityPool
from launch_sim.services.scenario import run_scenario, run_sweep, summarize
from launch_sim.services.settlement import sensitivity, settle
from launch_sim.services.traders import run_traders
from launch_sim.services.vault import split_allocations

__all__ = [
    "LiquidityPool",
    "clear",
    "generate_bids",
    "run_auction",
    "run_comparison",
    "run_scenario",
    "run_sweep",
    "run_traders",
    "sensitivity",
    "settle",
    "split_allocations",
    "summarize",
]
