from __future__ import annotations

import argparse
import asyncio
import logging

from aiohttp import web

from shop_haul.config import YamlConfigLoader
from shop_haul.config.models import AppConfig, ConfigLoadRequest
from shop_haul.errors import UpstreamUnavailableError
from shop_haul.logging import init_logging
from shop_haul.web.app import GalleryServices, build_services, create_app

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="shop-haul", description="Shop gallery server")
    parser.add_argument(
        "--config",
        default="data/config/config.yaml",
        help="Path to config.yaml (default: data/config/config.yaml)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True, help="Command to run")

    # Command: serve
    serve_parser = subparsers.add_parser("serve", help="Start the HTTP server")
    serve_parser.add_argument("--host", default=None, help="Bind address (overrides server.host)")
    serve_parser.add_argument("--port", type=int, default=None, help="Port (overrides server.port)")

    # Command: warm-screenshots
    subparsers.add_parser("warm-screenshots", help="Populate the screenshot cache for every shop")

    return parser


async def _load_config(args: argparse.Namespace) -> AppConfig:
    loader = YamlConfigLoader()
    request = ConfigLoadRequest(
        yaml_path=args.config,
    )
    return await loader.load(request)


async def _serve(args: argparse.Namespace) -> None:
    config = await _load_config(args)
    init_logging(config.logging)

    services = build_services(config)
    host = args.host or config.server.host
    port = args.port or config.server.port

    runner = web.AppRunner(create_app(services))
    await runner.setup()
    site = web.TCPSite(runner, host=host, port=port)
    await site.start()
    logger.info(
        "Shop gallery running. url=http://%s:%d cache_dir=%s",
        host,
        port,
        config.screenshots.cache_dir,
    )
    try:
        await asyncio.Event().wait()
    finally:
        await runner.cleanup()


async def warm_screenshots(services: GalleryServices) -> tuple[int, int]:
    """Produce a screenshot for every shop in the dataset. Returns (ok, failed)."""
    snapshot, source = await services.dataset_cache.get_snapshot()
    semaphore = asyncio.Semaphore(max(1, int(services.config.screenshots.warm_concurrency)))

    async def _warm_one(url: str) -> bool:
        async with semaphore:
            try:
                await services.screenshot_cache.get_or_produce(url)
                return True
            except UpstreamUnavailableError as e:
                logger.warning("Screenshot warm-up failed. url=%s error=%s", url, e.details)
                return False

    urls = sorted({shop.url for shop in snapshot.items})
    results = await asyncio.gather(*(_warm_one(url) for url in urls))
    ok = sum(1 for result in results if result)
    logger.info("Screenshot warm-up completed. ok=%d failed=%d dataset=%s", ok, len(results) - ok, source)
    return ok, len(results) - ok


async def _warm(args: argparse.Namespace) -> None:
    config = await _load_config(args)
    init_logging(config.logging)
    logger.info("Starting screenshot warm-up.")
    await warm_screenshots(build_services(config))


async def _main_async() -> None:
    parser = _build_parser()
    args = parser.parse_args()

    if args.command == "serve":
        await _serve(args)
    elif args.command == "warm-screenshots":
        await _warm(args)


def main() -> None:
    try:
        asyncio.run(_main_async())
    except KeyboardInterrupt:
        logger.info("Interrupted by user.")


if __name__ == "__main__":
    main()
