from __future__ import annotations

import html
import re
import time
from dataclasses import dataclass

import requests
from loguru import logger

from config import Configuration


class MenuFetchError(RuntimeError):
    pass


@dataclass
class _RetryPolicy:
    retries: int = 2
    base_delay: float = 0.5


_DROP_BLOCKS = re.compile(r"<(script|style|noscript|svg|head)\b.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
_BLOCK_TAGS = re.compile(r"</?(p|div|br|li|tr|td|th|h[1-6]|section|article|ul|ol|table|dt|dd)\b[^>]*>", re.IGNORECASE)
_ANY_TAG = re.compile(r"<[^>]+>")
_COMMENTS = re.compile(r"<!--.*?-->", re.DOTALL)


def html_to_text(markup: str) -> str:
    """Reduce an HTML page to newline-separated text lines."""
    if not markup:
        return ""
    text = _COMMENTS.sub(" ", markup)
    text = _DROP_BLOCKS.sub(" ", text)
    text = _BLOCK_TAGS.sub("\n", text)
    text = _ANY_TAG.sub(" ", text)
    text = html.unescape(text)
    lines = [" ".join(line.split()) for line in text.splitlines()]
    return "\n".join(line for line in lines if line)


class MenuFetcher:
    """Downloads a restaurant's website and returns its visible text."""

    def __init__(self, cfg: Configuration) -> None:
        self.cfg = cfg
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": cfg.menu_fetch_user_agent})
        self.policy = _RetryPolicy(retries=max(0, cfg.menu_fetch_retries))

    def _get(self, url: str) -> requests.Response:
        attempt = 0
        while True:
            attempt += 1
            try:
                resp = self.session.get(url, timeout=self.cfg.menu_fetch_timeout)
            except requests.RequestException as exc:  # network error
                if attempt <= self.policy.retries:
                    time.sleep(self.policy.base_delay * attempt)
                    continue
                raise MenuFetchError(f"request error: {exc}")

            if resp.status_code in (429, 500, 502, 503, 504):
                if attempt <= self.policy.retries:
                    time.sleep(self.policy.base_delay * attempt)
                    continue
                raise MenuFetchError(f"upstream {resp.status_code}: {resp.text[:300]}")

            if not resp.ok:
                raise MenuFetchError(f"upstream {resp.status_code}: {resp.text[:300]}")
            return resp

    def fetch_text(self, url: str) -> str:
        if not url or not url.lower().startswith(("http://", "https://")):
            raise MenuFetchError(f"unsupported menu url: {url!r}")
        resp = self._get(url)
        content_type = (resp.headers.get("Content-Type") or "").lower()
        body = resp.text or ""
        text = html_to_text(body) if "html" in content_type or "<" in body[:512] else body
        logger.debug("menu fetch url={} status={} chars={}", url, resp.status_code, len(text))
        return text
