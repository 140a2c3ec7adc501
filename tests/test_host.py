from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Error as PlaywrightError

from recorder.errors import HostError
from recorder.host import RenderHost


def make_host(make_config, **kwargs) -> tuple[RenderHost, AsyncMock]:
    host = RenderHost(make_config(), **kwargs)
    page = AsyncMock()
    host._page = page
    return host, page


@pytest.mark.asyncio
async def test_load_checks_that_player_script_ran(make_config) -> None:
    host, page = make_host(make_config)
    page.evaluate.return_value = True

    await host.load("<html></html>")

    page.set_content.assert_awaited_once_with("<html></html>")
    page.evaluate.assert_awaited_once()


@pytest.mark.asyncio
async def test_load_fails_when_player_is_missing(make_config) -> None:
    host, page = make_host(make_config)
    page.evaluate.return_value = False

    with pytest.raises(HostError, match="rrweb-player did not load"):
        await host.load("<html></html>")


@pytest.mark.asyncio
async def test_load_wraps_playwright_errors(make_config) -> None:
    host, page = make_host(make_config)
    page.set_content.side_effect = PlaywrightError("Target closed")

    with pytest.raises(HostError, match="Target closed"):
        await host.load("<html></html>")


def test_page_errors_are_forwarded(make_config) -> None:
    seen: list[str] = []
    logger = MagicMock()
    host = RenderHost(make_config(), logger=logger, on_page_error=seen.append)

    host._handle_page_error(RuntimeError("rrwebPlayer is not defined"))

    assert seen == ["rrwebPlayer is not defined"]
    logger.warning.assert_called_once()


def test_disconnect_after_close_is_ignored(make_config) -> None:
    calls: list[str] = []
    host = RenderHost(make_config(), on_disconnect=lambda: calls.append("gone"))

    host._handle_disconnect(MagicMock())
    host._closing = True
    host._handle_disconnect(MagicMock())

    assert calls == ["gone"]


@pytest.mark.asyncio
async def test_missing_surface_element(make_config) -> None:
    host, page = make_host(make_config)
    page.query_selector.return_value = None

    with pytest.raises(HostError, match="replayer element"):
        await host.surface()


def test_page_before_start_raises(make_config) -> None:
    with pytest.raises(HostError, match="not started"):
        RenderHost(make_config()).page
