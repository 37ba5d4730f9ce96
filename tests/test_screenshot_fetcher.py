import asyncio
import socket
import unittest

from aiohttp import web
from aiohttp.test_utils import TestServer

from shop_haul.errors import ScreenshotUnavailableError
from shop_haul.screenshots.fetcher import NO_PROVIDER_REASON, ScreenshotFetcher
from shop_haul.screenshots.providers import ScreenshotProvider, build_providers, screenshot_of_url, thum_io_url

TARGET = "https://shop.example.com/catalog?x=1"


async def _ok_image(request: web.Request) -> web.Response:
    return web.Response(body=b"jpeg-bytes", headers={"Content-Type": "image/jpeg"})


async def _server_error(request: web.Request) -> web.Response:
    return web.Response(status=503, text="busy")


async def _html(request: web.Request) -> web.Response:
    return web.Response(text="<html></html>", content_type="text/html")


async def _empty_image(request: web.Request) -> web.Response:
    return web.Response(body=b"", headers={"Content-Type": "image/png"})


async def _slow_image(request: web.Request) -> web.Response:
    await asyncio.sleep(1)
    return web.Response(body=b"late", headers={"Content-Type": "image/png"})


def _unused_port_url() -> str:
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    return f"http://127.0.0.1:{port}/nothing-listens-here"


class ScreenshotFetcherTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        app = web.Application()
        app.router.add_get("/ok", _ok_image)
        app.router.add_get("/error", _server_error)
        app.router.add_get("/html", _html)
        app.router.add_get("/empty", _empty_image)
        app.router.add_get("/slow", _slow_image)
        self.server = TestServer(app)
        await self.server.start_server()

    async def asyncTearDown(self) -> None:
        await self.server.close()

    def _provider(self, name: str, path: str) -> ScreenshotProvider:
        url = str(self.server.make_url(path))
        return ScreenshotProvider(name=name, build_url=lambda _target: url)

    async def test_first_usable_provider_wins(self) -> None:
        fetcher = ScreenshotFetcher(
            [self._provider("broken", "/error"), self._provider("good", "/ok")],
            timeout_seconds=5,
        )

        shot = await fetcher.fetch(TARGET)

        self.assertEqual(shot.body, b"jpeg-bytes")
        self.assertEqual(shot.content_type, "image/jpeg")

    async def test_empty_provider_list_fails_with_specific_message(self) -> None:
        fetcher = ScreenshotFetcher([], timeout_seconds=5)

        with self.assertRaises(ScreenshotUnavailableError) as ctx:
            await fetcher.fetch(TARGET)
        self.assertEqual(ctx.exception.details, NO_PROVIDER_REASON)

    async def test_all_rejections_report_the_last_reason(self) -> None:
        fetcher = ScreenshotFetcher(
            [self._provider("a", "/error"), self._provider("b", "/html")],
            timeout_seconds=5,
        )

        with self.assertRaises(ScreenshotUnavailableError) as ctx:
            await fetcher.fetch(TARGET)
        self.assertTrue(ctx.exception.details.startswith("Provider returned non-image content (text/html"))

    async def test_non_success_status_is_reported(self) -> None:
        fetcher = ScreenshotFetcher([self._provider("a", "/error")], timeout_seconds=5)

        with self.assertRaises(ScreenshotUnavailableError) as ctx:
            await fetcher.fetch(TARGET)
        self.assertEqual(ctx.exception.details, "Provider failed (503).")

    async def test_empty_body_is_rejected(self) -> None:
        fetcher = ScreenshotFetcher([self._provider("a", "/empty")], timeout_seconds=5)

        with self.assertRaises(ScreenshotUnavailableError) as ctx:
            await fetcher.fetch(TARGET)
        self.assertEqual(ctx.exception.details, "Provider returned an empty image.")

    async def test_network_error_is_a_rejection_not_an_exception(self) -> None:
        dead_url = _unused_port_url()
        fetcher = ScreenshotFetcher(
            [ScreenshotProvider(name="dead", build_url=lambda _t: dead_url), self._provider("good", "/ok")],
            timeout_seconds=5,
        )

        shot = await fetcher.fetch(TARGET)

        self.assertEqual(shot.body, b"jpeg-bytes")

    async def test_slow_provider_times_out_and_next_provider_wins(self) -> None:
        fetcher = ScreenshotFetcher(
            [self._provider("slow", "/slow"), self._provider("good", "/ok")],
            timeout_seconds=0.2,
        )

        shot = await fetcher.fetch(TARGET)

        self.assertEqual(shot.body, b"jpeg-bytes")

    async def test_timeout_is_reported_as_rejection_reason(self) -> None:
        fetcher = ScreenshotFetcher([self._provider("slow", "/slow")], timeout_seconds=0.2)

        with self.assertRaises(ScreenshotUnavailableError) as ctx:
            await fetcher.fetch(TARGET)
        self.assertEqual(ctx.exception.details, "Provider timed out after 0.2s.")

    async def test_provider_without_upstream_url_is_skipped(self) -> None:
        fetcher = ScreenshotFetcher(
            [ScreenshotProvider(name="skip", build_url=lambda _t: None), self._provider("good", "/ok")],
            timeout_seconds=5,
        )

        shot = await fetcher.fetch(TARGET)

        self.assertEqual(shot.body, b"jpeg-bytes")


class ProviderTests(unittest.TestCase):
    def test_thum_io_encodes_target(self) -> None:
        self.assertEqual(
            thum_io_url("https://a.com/?q=1"),
            "https://image.thum.io/get/width/1400/crop/900/noanimate/https%3A%2F%2Fa.com%2F%3Fq%3D1",
        )

    def test_screenshot_of_uses_host(self) -> None:
        self.assertEqual(screenshot_of_url("https://www.a.com/path"), "https://screenshotof.com/www.a.com")
        self.assertIsNone(screenshot_of_url("not a url"))

    def test_build_providers_keeps_order_and_rejects_unknown(self) -> None:
        providers = build_providers(["screenshot_of", "thum_io"])
        self.assertEqual([p.name for p in providers], ["screenshot_of", "thum_io"])
        with self.assertRaises(ValueError):
            build_providers(["nope"])


if __name__ == "__main__":
    unittest.main()
