"""Runtime settings for the quote, route and submit pipeline."""

import os
from dataclasses import dataclass, field, replace

from dexroute.constants import (
    CHAIN_ID,
    CONCENTRATED_ENCODER_ADDRESS,
    DEFAULT_INTERMEDIATE_TOKENS,
    WEIGHTED_ENCODER_ADDRESS,
)

DEFAULT_RPC_URLS = ("https://eth.llamarpc.com",)
CONCENTRATED_SUBGRAPH_ID = "DiYPVdygkfjDWhbxGSqAQxwBKmfKnkWQojqeM2rkLb3G"
WEIGHTED_SUBGRAPH_ID = "4rixbLvpuBCwXTJSwyAzQgsLR8KprnyMfyCuXT8Fj5cd"
GRAPH_GATEWAY = "https://gateway.thegraph.com/api/{api_key}/subgraphs/id/{subgraph_id}"


def _env_list(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.environ.get(name)
    if not raw:
        return default
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.lower() in ("true", "1", "yes")


def subgraph_url(subgraph_id: str, api_key: str) -> str:
    return GRAPH_GATEWAY.format(api_key=api_key, subgraph_id=subgraph_id)


@dataclass(frozen=True)
class Settings:
    """Pipeline configuration.

    Every field has a default; Settings.from_env() overrides them from
    DEXROUTE_* environment variables.

    Attributes:
        chain_id: Chain the client trades on (mainnet only)
        rpc_urls: JSON-RPC endpoints, rotated on rate limiting
        graph_api_key: API key for the subgraph gateway
        concentrated_subgraph_url: Indexer for concentrated-liquidity pools
        weighted_subgraph_url: Indexer for weighted and stable pools
        odos_base_url / oneinch_base_url: Aggregator API roots
        oneinch_api_key: Bearer token for the 1inch API (optional)
        user_address: Address quotes are requested for
        slippage_bps: Tolerated output reduction, in basis points
        max_hops: Longest path the route search enumerates (1 to 3)
        max_paths: Cap on enumerated paths per search
        max_candidates: Pool-disjoint candidates kept for splitting
        min_pool_liquidity: Concentrated pools below this liquidity are dropped
        search_min_liquidity: Route search ignores pools below this liquidity
        min_pool_tvl_usd: Pools reporting less TVL (USD) are dropped
        split_threshold: Runner-up / best output ratio above which a split
            is attempted
        quote_timeout: Per-source timeout, seconds
        bundler_timeout: Timeout of the pool-search-backed source, seconds
        wallet_mode: Selects the allowed quote sources (see allowed_protocols)
        intermediate_tokens: Hub tokens used by the pool queries
        concentrated_encoder / weighted_encoder: On-chain encoder contracts
        bundler_address: User-owned bundler contract
    """

    chain_id: int = CHAIN_ID
    rpc_urls: tuple[str, ...] = DEFAULT_RPC_URLS
    graph_api_key: str = ""
    concentrated_subgraph_url: str = ""
    weighted_subgraph_url: str = ""
    odos_base_url: str = "https://api.odos.xyz"
    oneinch_base_url: str = "https://api.1inch.dev"
    oneinch_api_key: str = ""
    user_address: str = ""
    slippage_bps: int = 50
    max_hops: int = 3
    max_paths: int = 200
    max_candidates: int = 4
    min_pool_liquidity: int = 1
    search_min_liquidity: int = 0
    min_pool_tvl_usd: int = 10_000
    split_threshold: float = 0.5
    quote_timeout: float = 10.0
    bundler_timeout: float = 30.0
    wallet_mode: str | None = None
    intermediate_tokens: tuple[str, ...] = field(default=DEFAULT_INTERMEDIATE_TOKENS)
    concentrated_encoder: str = CONCENTRATED_ENCODER_ADDRESS
    weighted_encoder: str = WEIGHTED_ENCODER_ADDRESS
    bundler_address: str = ""
    disable_rfqs: bool = True

    def __post_init__(self) -> None:
        if not 1 <= self.max_hops <= 3:
            raise ValueError(f"max_hops must be in [1, 3], got {self.max_hops}")
        if not 0 <= self.slippage_bps <= 10_000:
            raise ValueError(f"slippage_bps must be in [0, 10000], got {self.slippage_bps}")

    @property
    def slippage_percent(self) -> float:
        return self.slippage_bps / 100

    def with_overrides(self, **changes) -> "Settings":
        return replace(self, **changes)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from DEXROUTE_* environment variables."""
        default = cls()
        api_key = os.environ.get("DEXROUTE_GRAPH_API_KEY", default.graph_api_key)
        concentrated_url = os.environ.get("DEXROUTE_CONCENTRATED_SUBGRAPH_URL") or (
            subgraph_url(CONCENTRATED_SUBGRAPH_ID, api_key) if api_key else ""
        )
        weighted_url = os.environ.get("DEXROUTE_WEIGHTED_SUBGRAPH_URL") or (
            subgraph_url(WEIGHTED_SUBGRAPH_ID, api_key) if api_key else ""
        )
        return cls(
            chain_id=int(os.environ.get("DEXROUTE_CHAIN_ID", str(default.chain_id))),
            rpc_urls=_env_list("DEXROUTE_RPC_URLS", default.rpc_urls),
            graph_api_key=api_key,
            concentrated_subgraph_url=concentrated_url,
            weighted_subgraph_url=weighted_url,
            odos_base_url=os.environ.get("DEXROUTE_ODOS_URL", default.odos_base_url),
            oneinch_base_url=os.environ.get("DEXROUTE_ONEINCH_URL", default.oneinch_base_url),
            oneinch_api_key=os.environ.get("ONEINCH_API_KEY", default.oneinch_api_key),
            user_address=os.environ.get("DEXROUTE_USER_ADDRESS", default.user_address),
            slippage_bps=int(os.environ.get("DEXROUTE_SLIPPAGE_BPS", str(default.slippage_bps))),
            max_hops=int(os.environ.get("DEXROUTE_MAX_HOPS", str(default.max_hops))),
            max_paths=int(os.environ.get("DEXROUTE_MAX_PATHS", str(default.max_paths))),
            max_candidates=int(
                os.environ.get("DEXROUTE_MAX_CANDIDATES", str(default.max_candidates))
            ),
            min_pool_liquidity=int(
                os.environ.get("DEXROUTE_MIN_POOL_LIQUIDITY", str(default.min_pool_liquidity))
            ),
            search_min_liquidity=int(
                os.environ.get("DEXROUTE_SEARCH_MIN_LIQUIDITY", str(default.search_min_liquidity))
            ),
            min_pool_tvl_usd=int(
                os.environ.get("DEXROUTE_MIN_POOL_TVL_USD", str(default.min_pool_tvl_usd))
            ),
            split_threshold=float(
                os.environ.get("DEXROUTE_SPLIT_THRESHOLD", str(default.split_threshold))
            ),
            quote_timeout=float(
                os.environ.get("DEXROUTE_QUOTE_TIMEOUT", str(default.quote_timeout))
            ),
            bundler_timeout=float(
                os.environ.get("DEXROUTE_BUNDLER_TIMEOUT", str(default.bundler_timeout))
            ),
            wallet_mode=os.environ.get("DEXROUTE_WALLET_MODE") or None,
            intermediate_tokens=_env_list(
                "DEXROUTE_INTERMEDIATE_TOKENS", default.intermediate_tokens
            ),
            concentrated_encoder=os.environ.get(
                "DEXROUTE_CONCENTRATED_ENCODER", default.concentrated_encoder
            ),
            weighted_encoder=os.environ.get("DEXROUTE_WEIGHTED_ENCODER", default.weighted_encoder),
            bundler_address=os.environ.get("DEXROUTE_BUNDLER_ADDRESS", default.bundler_address),
            disable_rfqs=_env_bool("DEXROUTE_DISABLE_RFQS", default.disable_rfqs),
        )


# Default configuration instance
DEFAULT_SETTINGS = Settings()
