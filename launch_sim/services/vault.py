import math

from launch_sim.models import AuctionResult, VaultAllocation, VaultResult


def split_allocations(auction: AuctionResult) -> VaultResult:
    """Deposit every allocation receipt and mint PT + RT 1:1 with the filled tokens."""
    allocations = [
        VaultAllocation(
            bidder_id=o.id,
            receipt_id=o.receipt_id,
            pt_minted=o.filled,
            rt_minted=o.filled,
        )
        for o in auction.winners
    ]
    return VaultResult(
        allocations=allocations,
        total_pt=math.fsum(a.pt_minted for a in allocations),
        total_rt=math.fsum(a.rt_minted for a in allocations),
    )
