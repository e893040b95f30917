"""Link-header pagination for GitHub list endpoints."""

import re
from collections.abc import AsyncIterator
from typing import Any

_LINK_PATTERN = re.compile(r'<([^>]+)>;\s*rel="([^"]+)"')


class LinkHeader:
    """Parsed ``Link`` response header (rel -> url)."""

    def __init__(self, link_header: str | None = None):
        self.links: dict[str, str] = {}
        if link_header:
            for match in _LINK_PATTERN.finditer(link_header):
                url, rel = match.groups()
                self.links[rel] = url

    @property
    def next_url(self) -> str | None:
        """URL of the next page, if any."""
        return self.links.get("next")


class Page:
    """A single page of a list endpoint."""

    def __init__(self, items: list[dict[str, Any]], headers: dict[str, str]):
        self.items = items
        self.link_header = LinkHeader(headers.get("Link"))

    @property
    def next_url(self) -> str | None:
        return self.link_header.next_url


class AsyncPaginator:
    """Follows ``rel="next"`` links until the listing is exhausted.

    The query parameters are only sent with the first request; GitHub encodes
    them into the ``next`` URL for every following page.
    """

    def __init__(
        self,
        client: Any,
        initial_url: str,
        params: dict[str, Any] | None = None,
        per_page: int = 100,
    ):
        self.client = client
        self.initial_url = initial_url
        self.params = dict(params or {})
        self.params["per_page"] = min(per_page, 100)

    async def __aiter__(self) -> AsyncIterator[dict[str, Any]]:
        url: str | None = self.initial_url
        params: dict[str, Any] | None = self.params

        while url:
            page: Page = await self.client._fetch_page(url, params)
            for item in page.items:
                yield item
            url = page.next_url
            params = None

    async def collect_all(self) -> list[dict[str, Any]]:
        """Fetch every page and return the items in order."""
        return [item async for item in self]
