from __future__ import annotations

from unittest import mock

import pytest
import requests

from config import Configuration
from services.menu_fetcher import MenuFetchError, MenuFetcher, html_to_text


def _response(status: int = 200, text: str = "", content_type: str = "text/html") -> mock.Mock:
    return mock.Mock(status_code=status, ok=status < 400, text=text, headers={"Content-Type": content_type})


def _fetcher(**cfg) -> MenuFetcher:
    fetcher = MenuFetcher(Configuration(**cfg))
    fetcher.policy.base_delay = 0.0
    return fetcher


def test_html_to_text_keeps_visible_lines() -> None:
    markup = """
    <html><head><title>Menu</title><style>.x{}</style></head>
    <body>
      <!-- hidden -->
      <script>var gf = true;</script>
      <h1>Dinner</h1>
      <ul><li>Salad &amp; greens - gluten-free</li><li>Pasta: wheat</li></ul>
    </body></html>
    """
    assert html_to_text(markup) == "Dinner\nSalad & greens - gluten-free\nPasta: wheat"
    assert html_to_text("") == ""


def test_fetch_text_converts_html() -> None:
    fetcher = _fetcher()
    with mock.patch.object(fetcher.session, "get", return_value=_response(text="<p>Soup - gluten-free</p>")) as get:
        assert fetcher.fetch_text("https://cafe.example/menu") == "Soup - gluten-free"
    get.assert_called_once_with("https://cafe.example/menu", timeout=15)


def test_fetch_text_passes_plain_text_through() -> None:
    fetcher = _fetcher()
    with mock.patch.object(fetcher.session, "get", return_value=_response(text="Soup - GF", content_type="text/plain")):
        assert fetcher.fetch_text("http://cafe.example/menu.txt") == "Soup - GF"


def test_rejects_non_http_urls() -> None:
    fetcher = _fetcher()
    with pytest.raises(MenuFetchError):
        fetcher.fetch_text("ftp://cafe.example/menu")
    with pytest.raises(MenuFetchError):
        fetcher.fetch_text("")


def test_retries_transient_status_then_succeeds() -> None:
    fetcher = _fetcher()
    responses = [_response(503), _response(200, text="Tea - gluten free", content_type="text/plain")]
    with mock.patch.object(fetcher.session, "get", side_effect=responses) as get:
        assert fetcher.fetch_text("https://cafe.example") == "Tea - gluten free"
    assert get.call_count == 2


def test_gives_up_after_retries() -> None:
    fetcher = _fetcher(menu_fetch_retries=1)
    with mock.patch.object(fetcher.session, "get", side_effect=requests.ConnectionError("down")) as get:
        with pytest.raises(MenuFetchError):
            fetcher.fetch_text("https://cafe.example")
    assert get.call_count == 2


def test_client_errors_are_not_retried() -> None:
    fetcher = _fetcher()
    with mock.patch.object(fetcher.session, "get", return_value=_response(404, text="not found")) as get:
        with pytest.raises(MenuFetchError):
            fetcher.fetch_text("https://cafe.example")
    assert get.call_count == 1
