"""
PostgREST (Supabase) implementation of the remote store.

Talks to ``<url>/rest/v1/<table>`` with aiohttp:
- count  -> HEAD with ``Prefer: count=exact``, total read from Content-Range
- page   -> GET ``order=<col>.desc&offset=<n>&limit=<m>``
- search -> GET ``<col>=ilike.*a*b*&limit=<m>``
"""

import asyncio
import os
import re
from typing import Optional

import aiohttp

from shared.logging import get_logger

from .exceptions import ConfigError, StoreError
from .store import RemoteStore

log = get_logger("datastore", "postgrest")

_PLAIN_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def quote_identifier(name: str) -> str:
    """Double-quote a column name for PostgREST unless it is a plain identifier."""
    if _PLAIN_IDENTIFIER.match(name):
        return name
    return '"' + name.replace('"', '\\"') + '"'


def parse_content_range(header: Optional[str]) -> int:
    """
    Total row count from a Content-Range header ("0-999/2500" or "*/2500").

    Raises:
        StoreError: The header is missing or carries no exact total
    """
    if not header or "/" not in header:
        raise StoreError(f"Missing row count in Content-Range: {header!r}")
    total = header.rsplit("/", 1)[1].strip()
    if not total.isdigit():
        raise StoreError(f"Row count not exact in Content-Range: {header!r}")
    return int(total)


class PostgrestStore(RemoteStore):
    """
    Remote store backed by a Supabase project's REST endpoint.

    Usage:
        store = PostgrestStore.from_env()
        total = await store.count("press_releases")
        await store.close()
    """

    def __init__(self, url: str, api_key: str, timeout_seconds: float = 30.0):
        """
        Initialize the store.

        Args:
            url: Project URL, e.g. https://xyz.supabase.co
            api_key: Anon (or service) key sent as apikey and bearer token
            timeout_seconds: Total timeout per request
        """
        self.url = url.rstrip("/")
        self._api_key = api_key
        self.timeout_seconds = timeout_seconds
        self._http_session: Optional[aiohttp.ClientSession] = None

    @classmethod
    def from_env(cls, timeout_seconds: float = 30.0) -> "PostgrestStore":
        """Build from SUPABASE_URL and SUPABASE_ANON_KEY (or SUPABASE_KEY)."""
        url = os.environ.get("SUPABASE_URL")
        key = os.environ.get("SUPABASE_ANON_KEY") or os.environ.get("SUPABASE_KEY")
        if not url or not key:
            raise ConfigError("SUPABASE_URL and SUPABASE_ANON_KEY must be set")
        return cls(url, key, timeout_seconds=timeout_seconds)

    def _table_url(self, collection: str) -> str:
        return f"{self.url}/rest/v1/{collection}"

    def _headers(self, **extra: str) -> dict:
        return {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._api_key}",
            "Accept": "application/json",
            **extra,
        }

    async def _get_http_session(self) -> aiohttp.ClientSession:
        """Get or create the HTTP session."""
        if self._http_session is None or self._http_session.closed:
            self._http_session = aiohttp.ClientSession()
        return self._http_session

    async def close(self) -> None:
        """Close HTTP session."""
        if self._http_session and not self._http_session.closed:
            await self._http_session.close()
            self._http_session = None

    async def _raise_for_status(self, resp: aiohttp.ClientResponse, collection: str) -> None:
        if resp.status < 400:
            return
        message = resp.reason or "request failed"
        try:
            body = await resp.json(content_type=None)
            if isinstance(body, dict) and body.get("message"):
                message = body["message"]
        except (aiohttp.ContentTypeError, ValueError):
            pass
        raise StoreError(f"{collection}: {message}", status=resp.status)

    async def _get_rows(self, collection: str, params: dict) -> list[dict]:
        session = await self._get_http_session()
        try:
            async with session.get(
                self._table_url(collection),
                params=params,
                headers=self._headers(),
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
            ) as resp:
                await self._raise_for_status(resp, collection)
                data = await resp.json()
        except aiohttp.ClientError as e:
            log.error("datastore.postgrest.request_failed", collection=collection, error=str(e))
            raise StoreError(f"Could not reach store: {e}") from e
        except asyncio.TimeoutError as e:
            raise StoreError(f"{collection}: request timed out after {self.timeout_seconds}s") from e

        if not isinstance(data, list):
            raise StoreError(f"{collection}: expected a list of rows")
        return data

    async def count(self, collection: str) -> int:
        session = await self._get_http_session()
        try:
            async with session.head(
                self._table_url(collection),
                params={"select": "*"},
                headers=self._headers(Prefer="count=exact"),
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
            ) as resp:
                await self._raise_for_status(resp, collection)
                return parse_content_range(resp.headers.get("Content-Range"))
        except aiohttp.ClientError as e:
            log.error("datastore.postgrest.request_failed", collection=collection, error=str(e))
            raise StoreError(f"Could not reach store: {e}") from e
        except asyncio.TimeoutError as e:
            raise StoreError(f"{collection}: request timed out after {self.timeout_seconds}s") from e

    async def page(self, collection: str, order_key: str, offset: int, limit: int) -> list[dict]:
        params = {
            "select": "*",
            "order": f"{quote_identifier(order_key)}.desc",
            "offset": str(offset),
            "limit": str(limit),
        }
        rows = await self._get_rows(collection, params)
        log.debug("datastore.postgrest.page", collection=collection, offset=offset, rows=len(rows))
        return rows

    async def search(self, collection: str, field: str, pattern: str, limit: int) -> list[dict]:
        # PostgREST accepts * as the LIKE wildcard in URLs
        wildcard = pattern.replace("%", "*")
        params = {
            "select": "*",
            quote_identifier(field): f"ilike.*{wildcard}*",
            "limit": str(limit),
        }
        return await self._get_rows(collection, params)
