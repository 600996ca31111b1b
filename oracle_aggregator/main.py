#!/usr/bin/env python3
"""Oracle Aggregator.

Fetches cryptocurrency prices from multiple sources, filters outliers,
aggregates them with the selected strategy and prints one JSON object per
symbol to stdout.

Configure via CLI flags or the environment variables listed in --help.
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import asdict

from .src.OracleAggregator import OracleAggregator
from .src.OracleConfig import AggregationConfig, CacheConfig
from .src.OutlierFilter import OutlierMethod
from .src.PriceTypes import SymbolResult
from .src.sources import BaseSource, SourceConfigError, get_available_sources, get_source
from .src.strategies import get_available_strategies, get_strategy

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)


def parse_api_keys(api_key_str: str | None) -> dict[str, str]:
    """Parse comma-separated API key string into a dictionary.

    Format: source1=key1,source2=key2
    Example: coingecko=abc123,coinmarketcap=xyz789

    :param api_key_str: Comma-separated API key string.
    :returns: Dict mapping source names to API keys.
    """
    if not api_key_str:
        return {}

    api_keys = {}
    for item in api_key_str.split(","):
        item = item.strip()
        if "=" in item:
            source, key = item.split("=", 1)
            api_keys[source.strip().lower()] = key.strip()
    return api_keys


def parse_env_api_keys() -> dict[str, str]:
    """Parse API keys from individual environment variables.

    Looks for: API_KEY_COINGECKO, API_KEY_COINMARKETCAP, etc.

    :returns: Dict mapping source names to API keys.
    """
    api_keys = {}
    prefix = "API_KEY_"

    for key, value in os.environ.items():
        if key.startswith(prefix) and value:
            api_keys[key[len(prefix):].lower()] = value

    return api_keys


def parse_source_weights(source_str: str) -> dict[str, float]:
    """Parse a source list with optional weights.

    Format: source1,source2:2.5 (weight defaults to 1.0)

    :param source_str: Comma-separated source list.
    :returns: Dict mapping source names to weights, in order.
    :raises ValueError: If a weight is not a number.
    """
    weights: dict[str, float] = {}
    for item in source_str.split(","):
        item = item.strip()
        if not item:
            continue
        name, _, weight = item.partition(":")
        weights[name.strip().lower()] = float(weight) if weight else 1.0
    return weights


def build_aggregator(
    source_weights: dict[str, float],
    api_keys: dict[str, str],
    config: AggregationConfig,
    cache_config: CacheConfig,
    strategy_name: str,
    fetch_timeout: float,
) -> OracleAggregator:
    """Create an aggregator with the named sources registered.

    Sources that cannot be configured (e.g. missing API key) are skipped.

    :returns: Configured OracleAggregator.
    """
    aggregator = OracleAggregator(
        config,
        cache_config,
        strategy=get_strategy(strategy_name),
        fetch_timeout=fetch_timeout,
    )
    for name, weight in source_weights.items():
        try:
            source = get_source(name, api_key=api_keys.get(name), timeout=fetch_timeout)
        except SourceConfigError as e:
            logger.warning(f"Skipping source {name}: {e}")
            continue
        aggregator.add_source(source, weight)
    return aggregator


def format_result(result: SymbolResult) -> dict:
    """Convert a SymbolResult into a JSON-serializable dict."""
    if result.price is not None:
        return {"symbol": result.symbol, "success": True, **asdict(result.price)}
    return {
        "symbol": result.symbol,
        "success": False,
        "error": str(result.error),
        "error_type": type(result.error).__name__,
    }


async def run(aggregator: OracleAggregator, symbols: list[str]) -> list[SymbolResult]:
    """Aggregate all symbols once and release HTTP resources."""
    try:
        return await aggregator.get_aggregated_prices(symbols)
    finally:
        await BaseSource.close_shared_client()


def main() -> None:
    """Main entry point for the Oracle Aggregator CLI."""
    available_sources = get_available_sources()
    available_strategies = get_available_strategies()

    parser = argparse.ArgumentParser(
        description="Oracle Aggregator: Multi-source price aggregation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Available price sources:
  {', '.join(available_sources)}

Available strategies:
  {', '.join(available_strategies)}

Examples:
  # BTC and ETH from three free sources
  python -m oracle_aggregator.main --symbols btc/usd,eth/usd \\
      --sources coinbase,kraken,coingecko

  # Weighted average, trusting Kraken twice as much
  python -m oracle_aggregator.main --symbols btc \\
      --sources coinbase,kraken:2,coingecko --strategy weighted_average

  # With API keys for premium sources
  python -m oracle_aggregator.main --symbols btc/usd \\
      --sources coinbase,coingecko,coinmarketcap \\
      --api-keys coinmarketcap=your-api-key

Environment variables (CLI args take precedence):
  SYMBOLS, SOURCES, STRATEGY, MIN_SOURCES, MAX_DEVIATION_PERCENT,
  MAX_STALENESS_SECONDS, OUTLIER_METHOD, OUTLIER_THRESHOLD, CACHE_TTL,
  FETCH_TIMEOUT, API_KEYS, API_KEY_COINGECKO, API_KEY_COINMARKETCAP, etc.
""",
    )

    parser.add_argument(
        "--symbols",
        type=str,
        help="Comma-separated symbols (e.g., btc/usd,eth/usd,xlm)",
        default=os.environ.get("SYMBOLS") or "btc/usd",
    )

    parser.add_argument(
        "--sources",
        type=str,
        help=f"Comma-separated sources with optional :weight. Available: {', '.join(available_sources)}",
        default=os.environ.get("SOURCES") or "coinbase,kraken,coingecko",
    )

    parser.add_argument(
        "--strategy",
        type=str,
        choices=available_strategies,
        help="Aggregation strategy (default: median)",
        default=os.environ.get("STRATEGY") or "median",
    )

    parser.add_argument(
        "--min-sources",
        dest="min_sources",
        type=int,
        help="Minimum sources required for valid aggregation (default: 2)",
        default=int(os.environ.get("MIN_SOURCES") or "2"),
    )

    parser.add_argument(
        "--max-deviation",
        dest="max_deviation",
        type=float,
        help="Max price deviation percent from median (default: 10.0, 0 to disable)",
        default=float(os.environ.get("MAX_DEVIATION_PERCENT") or "10.0"),
    )

    parser.add_argument(
        "--max-staleness",
        dest="max_staleness",
        type=float,
        help="Max observation age in seconds (default: 60)",
        default=float(os.environ.get("MAX_STALENESS_SECONDS") or "60"),
    )

    parser.add_argument(
        "--outlier-method",
        dest="outlier_method",
        type=str,
        choices=[m.value for m in OutlierMethod] + ["none"],
        help="Outlier detection method (default: z_score, 'none' to disable)",
        default=os.environ.get("OUTLIER_METHOD") or OutlierMethod.Z_SCORE.value,
    )

    parser.add_argument(
        "--outlier-threshold",
        dest="outlier_threshold",
        type=float,
        help="Z-score threshold for outlier detection (default: 2.0)",
        default=float(os.environ.get("OUTLIER_THRESHOLD") or "2.0"),
    )

    parser.add_argument(
        "--cache-ttl",
        dest="cache_ttl",
        type=float,
        help="Aggregated price cache TTL in seconds (default: 60)",
        default=float(os.environ.get("CACHE_TTL") or "60"),
    )

    parser.add_argument(
        "--api-keys",
        dest="api_keys",
        type=str,
        help="Comma-separated API keys (e.g., coingecko=abc,coinmarketcap=xyz)",
        default=os.environ.get("API_KEYS"),
    )

    parser.add_argument(
        "--fetch-timeout",
        dest="fetch_timeout",
        type=float,
        help="Timeout for individual fetch requests in seconds (default: 10.0)",
        default=float(os.environ.get("FETCH_TIMEOUT") or "10.0"),
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    args = parser.parse_args()

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    # Validate arguments
    if args.fetch_timeout <= 0:
        parser.error("--fetch-timeout must be positive")

    symbols = [s.strip() for s in args.symbols.split(",") if s.strip()]
    if not symbols:
        parser.error("At least one symbol must be specified")

    try:
        source_weights = parse_source_weights(args.sources)
    except ValueError as e:
        parser.error(f"Invalid source weight: {e}")

    if not source_weights:
        parser.error("At least one source must be specified")

    invalid_sources = [s for s in source_weights if s not in available_sources]
    if invalid_sources:
        parser.error(
            f"Unknown sources: {invalid_sources}. "
            f"Available: {', '.join(available_sources)}"
        )

    outlier_enabled = args.outlier_method != "none"
    try:
        config = AggregationConfig(
            min_sources=args.min_sources,
            max_deviation_percent=args.max_deviation,
            max_staleness_seconds=args.max_staleness,
            enable_outlier_detection=outlier_enabled,
            outlier_threshold=args.outlier_threshold,
            outlier_method=args.outlier_method if outlier_enabled else OutlierMethod.Z_SCORE,
        )
        cache_config = CacheConfig(ttl_seconds=args.cache_ttl)
    except ValueError as e:
        parser.error(str(e))

    # Parse API keys (CLI + environment)
    api_keys = parse_env_api_keys()
    api_keys.update(parse_api_keys(args.api_keys))

    # Log configuration
    logger.info("=" * 60)
    logger.info("Oracle Aggregator")
    logger.info("=" * 60)
    logger.info(f"Symbols:           {', '.join(symbols)}")
    logger.info(f"Sources:           {', '.join(f'{s}:{w:g}' for s, w in source_weights.items())}")
    logger.info(f"Strategy:          {args.strategy}")
    logger.info(f"Min Sources:       {config.min_sources}")
    logger.info(f"Max Deviation:     {config.max_deviation_percent}%")
    logger.info(f"Max Staleness:     {config.max_staleness_seconds}s")
    logger.info(
        f"Outliers:          {config.outlier_method.value} (threshold {config.outlier_threshold})"
        if outlier_enabled
        else "Outliers:          disabled"
    )
    logger.info(f"Fetch Timeout:     {args.fetch_timeout}s")
    if api_keys:
        logger.info(f"API Keys:          {', '.join(api_keys.keys())}")
    logger.info("=" * 60)

    try:
        aggregator = build_aggregator(
            source_weights,
            api_keys,
            config,
            cache_config,
            args.strategy,
            args.fetch_timeout,
        )
        results = asyncio.run(run(aggregator, symbols))
    except KeyboardInterrupt:
        logger.info("Shutting down...")
        return
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)

    for result in results:
        print(json.dumps(format_result(result)))

    if not any(r.success for r in results):
        sys.exit(1)


if __name__ == "__main__":
    main()
