"""fxlevels — application entry point.

Boots the FastAPI read API and provides the CLI entry point for one-shot
and serving modes.
"""

import logging

from fastapi import FastAPI

from fxlevels.api.routers import router

app = FastAPI(title="fxlevels Heat Map API", version="0.1.0")
app.include_router(router)

logger = logging.getLogger("fxlevels")


@app.get("/health")
async def health():
    """Liveness check."""
    return {"status": "ok"}


def build_feed(config, source: str, seed: int):
    """Construct the price feed for *source* (``"demo"`` or ``"oanda"``)."""
    if source == "oanda":
        from fxlevels.broker.feeds import OandaPriceFeed
        from fxlevels.broker.oanda_client import OandaClient

        return OandaPriceFeed(
            OandaClient(config),
            channel_window=config.channel_window,
            cache_ttl_seconds=config.price_cache_ttl_seconds,
        )

    from fxlevels.broker.demo_feed import DemoPriceFeed

    logger.info("Using demo price feed (seed=%d) — prices are synthetic.", seed)
    return DemoPriceFeed(seed=seed, series_length=max(40, config.channel_window))


# ── CLI ──────────────────────────────────────────────────────────────────


def _run_cli() -> None:
    """Parse CLI arguments and dispatch to the appropriate mode."""
    import argparse
    import asyncio
    import dataclasses
    import signal

    from fxlevels.config import DATA_SOURCES, load_config
    from fxlevels.heatmap import RANK_KEYS
    from fxlevels.refresher import HeatMapRefresher
    from fxlevels.strategy.instruments import get_instrument

    parser = argparse.ArgumentParser(description="fxlevels pivot heat map")
    parser.add_argument(
        "--mode",
        choices=["once", "serve"],
        default="once",
        help="Compute one pass and print it, or serve the API (default: once)",
    )
    parser.add_argument("--source", choices=DATA_SOURCES, help="Override DATA_SOURCE")
    parser.add_argument("--seed", type=int, help="Override DEMO_SEED")
    parser.add_argument("--rank-by", choices=RANK_KEYS, help="Ranking for --mode once")
    args = parser.parse_args()

    config = load_config()
    if args.source:
        config = dataclasses.replace(config, data_source=args.source)

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    seed = args.seed if args.seed is not None else config.demo_seed
    feed = build_feed(config, config.data_source, seed)
    instruments = [get_instrument(s) for s in config.universe]
    refresher = HeatMapRefresher(
        feed,
        instruments,
        thresholds=config.thresholds,
        channel_window=config.channel_window,
        interval_seconds=config.refresh_interval_seconds,
    )

    if args.mode == "once":
        from fxlevels.cli.dashboard import print_heatmap
        from fxlevels.heatmap import rank_heatmap

        published = asyncio.run(refresher.run_pass())
        if published is None:
            raise SystemExit("Heat-map pass failed; see log for details.")
        print_heatmap(rank_heatmap(published.records, args.rank_by), published.pass_id)
        return

    def handle_shutdown(signum, frame):
        logger.info("Shutdown signal received — stopping gracefully.")
        refresher.stop()

    signal.signal(signal.SIGINT, handle_shutdown)
    asyncio.run(_serve(refresher, config.api_port))


async def _serve(refresher, port: int) -> None:
    """Run the refresher loop and the API server concurrently."""
    import asyncio

    import uvicorn

    from fxlevels.api.routers import configure_routers

    configure_routers(refresher=refresher)
    server = uvicorn.Server(
        uvicorn.Config(app, host="0.0.0.0", port=port, log_level="info")
    )

    async def _run_server():
        await server.serve()
        refresher.stop()

    logger.info("Heat map available at http://localhost:%d/heatmap", port)
    results = await asyncio.gather(
        _run_server(),
        refresher.run(),
        return_exceptions=True,
    )
    logger.info("fxlevels stopped. Results: %s", results)


if __name__ == "__main__":
    _run_cli()
