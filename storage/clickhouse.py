"""
Storage - ClickHouse HTTP Client.

============================================================
RESPONSIBILITY
============================================================
Thin async client for the ClickHouse HTTP interface.

- SELECTs return rows as dictionaries (FORMAT JSON)
- Inserts stream rows as JSONEachRow
- Query parameters are bound server-side ({name:Type} / param_name)
- Every failure surfaces as ClickHouseError, including timeouts

============================================================
WIRE CONTRACT
============================================================
POST {url}/?database=<db>&param_<name>=<value>
    body: "<statement> FORMAT JSON"

POST {url}/?database=<db>&query=INSERT INTO <table> FORMAT JSONEachRow
    body: one JSON object per line

GET  {url}/ping  ->  "Ok."

============================================================
"""

import asyncio
import json
import logging
import time
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

import aiohttp

from core.settings import ClickHouseConfig


logger = logging.getLogger(__name__)


class ClickHouseError(Exception):
    """Error talking to ClickHouse or interpreting its response."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        query: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response_body = response_body
        self.query = query
        self.original_error = original_error

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "status_code": self.status_code,
            "response_body": self.response_body,
            "query": self.query[:500] if self.query else None,
            "original_error": str(self.original_error) if self.original_error else None,
        }

    def __str__(self) -> str:
        parts = [f"{self.__class__.__name__}: {self.message}"]
        if self.status_code:
            parts.append(f"[status={self.status_code}]")
        if self.original_error:
            parts.append(f"(caused by: {self.original_error})")
        return " ".join(parts)


def format_param(value: Any) -> str:
    """Render a Python value the way ClickHouse parses query parameters."""
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value)


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


class ClickHouseClient:
    """
    Async ClickHouse client over HTTP(S).

    Usage:
        async with ClickHouseClient(ClickHouseConfig.from_env()) as client:
            rows = await client.query("SELECT count() AS n FROM blocks")
    """

    def __init__(
        self,
        config: ClickHouseConfig,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self._config = config
        self._session = session
        self._owns_session = session is None
        self._last_latency_ms: Optional[float] = None

    @property
    def config(self) -> ClickHouseConfig:
        return self._config

    @property
    def last_latency_ms(self) -> Optional[float]:
        return self._last_latency_ms

    # ─────────────────────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────────────────────

    async def query(
        self,
        sql: str,
        params: Optional[Mapping[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """Run a SELECT and return its rows."""
        body = await self._post(f"{sql.rstrip().rstrip(';')} FORMAT JSON", params)
        if not body.strip():
            return []
        try:
            decoded = json.loads(body)
        except json.JSONDecodeError as e:
            raise ClickHouseError(
                "Malformed JSON response",
                response_body=body[:500],
                query=sql,
                original_error=e,
            )
        data = decoded.get("data") if isinstance(decoded, dict) else None
        if not isinstance(data, list):
            raise ClickHouseError(
                "Response has no data section",
                response_body=body[:500],
                query=sql,
            )
        return data

    async def command(
        self,
        sql: str,
        params: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """Run a statement that returns no rows (DDL, TRUNCATE, ...)."""
        await self._post(sql, params)

    async def insert(self, table: str, rows: Sequence[Mapping[str, Any]]) -> int:
        """
        Insert rows in one request.

        Returns:
            Number of rows sent
        """
        if not rows:
            return 0
        payload = "\n".join(json.dumps(dict(row), default=_json_default) for row in rows)
        statement = f"INSERT INTO {table} FORMAT JSONEachRow"
        await self._post(payload, None, statement=statement)
        return len(rows)

    async def ping(self) -> bool:
        """Check server liveness."""
        session = await self._get_session()
        try:
            async with session.get(
                f"{self._base_url()}/ping",
                headers=self._get_default_headers(),
            ) as response:
                text = await response.text()
                return response.status == 200 and text.strip() == "Ok."
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"[clickhouse] ping failed: {e}")
            return False

    # ─────────────────────────────────────────────────────────────
    # HTTP Helpers
    # ─────────────────────────────────────────────────────────────

    def _base_url(self) -> str:
        return self._config.url.rstrip("/")

    def _get_default_headers(self) -> Dict[str, str]:
        headers = {"User-Agent": "BlocksAnalytics/1.0"}
        if self._config.user:
            headers["X-ClickHouse-User"] = self._config.user
        if self._config.password:
            headers["X-ClickHouse-Key"] = self._config.password
        return headers

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._config.timeout_seconds),
            )
            self._owns_session = True
        return self._session

    async def _post(
        self,
        body: str,
        params: Optional[Mapping[str, Any]],
        statement: Optional[str] = None,
    ) -> str:
        """POST a statement and return the raw response body."""
        session = await self._get_session()

        url_params: Dict[str, str] = {"database": self._config.database}
        if statement is not None:
            url_params["query"] = statement
        for name, value in (params or {}).items():
            url_params[f"param_{name}"] = format_param(value)

        shown_query = statement or body
        start_time = time.time()
        try:
            async with session.post(
                f"{self._base_url()}/",
                params=url_params,
                data=body.encode("utf-8"),
                headers=self._get_default_headers(),
            ) as response:
                text = await response.text()
                self._last_latency_ms = (time.time() - start_time) * 1000

                if response.status >= 400:
                    raise ClickHouseError(
                        message=f"HTTP {response.status}",
                        status_code=response.status,
                        response_body=text[:500],
                        query=shown_query,
                    )
                return text

        except asyncio.TimeoutError as e:
            raise ClickHouseError(
                message=f"Timed out after {self._config.timeout_seconds}s",
                query=shown_query,
                original_error=e,
            )
        except aiohttp.ClientError as e:
            raise ClickHouseError(
                message=f"Connection error: {e}",
                query=shown_query,
                original_error=e,
            )

    # ─────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────

    async def close(self) -> None:
        """Close resources."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "ClickHouseClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"<ClickHouseClient(url={self._base_url()}, database={self._config.database})>"
