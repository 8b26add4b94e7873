"""Route search over pool snapshots.

Module structure:
- pathfinding.py: PoolGraph and PathFinder for pool-path enumeration
- splitter.py: golden-section split optimizer
- search.py: RouteSearch, candidate pricing and split selection
"""

from dexroute.routing.pathfinding import Hop, PathFinder, PoolGraph, PoolPath
from dexroute.routing.search import RouteSearch, build_route, simulate_path
from dexroute.routing.splitter import SplitResult, golden_section_maximize, optimize_split

__all__ = [
    "Hop",
    "PathFinder",
    "PoolGraph",
    "PoolPath",
    "RouteSearch",
    "SplitResult",
    "build_route",
    "golden_section_maximize",
    "optimize_split",
    "simulate_path",
]
