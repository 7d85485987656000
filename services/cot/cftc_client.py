# services/cot/cftc_client.py
from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Tuple

import httpx

from config.settings import (
    CFTC_APP_TOKEN,
    CFTC_MAX_RETRIES,
    CFTC_PAGE_SIZE,
    CFTC_TIMEOUT_SEC,
    CFTC_URL,
)
from services.cot.name_filters import DATE_FIELD, LONG_NAME_FIELD, SHORT_NAME_FIELD
from services.cot.soql import Predicate

logger = logging.getLogger(__name__)

RETRY_STATUS_CODES = {429, 500, 502, 503, 504}

POSITION_FIELDS: Tuple[str, ...] = (
    DATE_FIELD,
    LONG_NAME_FIELD,
    SHORT_NAME_FIELD,
    "noncomm_positions_long_all",
    "noncomm_positions_short_all",
    "comm_positions_long_all",
    "comm_positions_short_all",
    "nonrept_positions_long_all",
    "nonrept_positions_short_all",
    "open_interest_all",
)

Row = Dict[str, Any]


class CftcClientError(RuntimeError):
    """Raised when the positions dataset cannot be queried."""


@dataclass(frozen=True)
class SocrataQuery:
    where: Optional[Predicate] = None
    select: Tuple[str, ...] = POSITION_FIELDS
    order: str = f"{DATE_FIELD} ASC"
    limit: Optional[int] = None
    offset: int = 0
    group: Optional[str] = None

    def to_params(self) -> Dict[str, str]:
        params: Dict[str, str] = {"$select": ", ".join(self.select)}
        if self.where is not None:
            params["$where"] = self.where.render()
        if self.order:
            params["$order"] = self.order
        if self.group:
            params["$group"] = self.group
        if self.limit is not None:
            params["$limit"] = str(int(self.limit))
        if self.offset:
            params["$offset"] = str(int(self.offset))
        return params


async def _backoff_sleep(attempt: int) -> None:
    await asyncio.sleep((0.6 * (2**attempt)) + random.random() * 0.3)


class CftcClient:
    """
    Async client for the CFTC public reporting (Socrata) API.

    Every call is bounded by a timeout; 429/5xx and timeouts are retried
    with jittered backoff, anything else fails fast with CftcClientError.
    """

    def __init__(
        self,
        base_url: str = CFTC_URL,
        *,
        timeout: float = CFTC_TIMEOUT_SEC,
        app_token: str = CFTC_APP_TOKEN,
        max_retries: int = CFTC_MAX_RETRIES,
        page_size: int = CFTC_PAGE_SIZE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.app_token = app_token
        self.max_retries = max(0, max_retries)
        self.page_size = max(1, page_size)
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.app_token:
            headers["X-App-Token"] = self.app_token
        return headers

    async def query(self, q: SocrataQuery) -> List[Row]:
        params = q.to_params()
        last_exc: Exception | None = None

        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            transport=self._transport,
        ) as client:
            for attempt in range(self.max_retries + 1):
                try:
                    response = await client.get(self.base_url, params=params, headers=self._headers())
                    if response.status_code in RETRY_STATUS_CODES and attempt < self.max_retries:
                        logger.info(
                            "cftc_retry status=%s attempt=%s", response.status_code, attempt + 1
                        )
                        await _backoff_sleep(attempt)
                        continue
                    if response.status_code >= 400:
                        body = response.text[:300]
                        raise CftcClientError(f"CFTC {response.status_code}: {body}")
                    data = response.json() if response.content else []
                    if not isinstance(data, list):
                        raise CftcClientError("CFTC returned a non-list payload")
                    return [r for r in data if isinstance(r, dict)]
                except httpx.TimeoutException as exc:
                    last_exc = exc
                except httpx.HTTPError as exc:
                    last_exc = exc
                    break
                except ValueError as exc:
                    raise CftcClientError(f"CFTC returned invalid JSON: {exc}") from exc

                if attempt < self.max_retries:
                    await _backoff_sleep(attempt)

        raise CftcClientError(f"CFTC request failed: {last_exc!r}")

    async def query_all(self, q: SocrataQuery) -> List[Row]:
        """Page through a query with $limit/$offset until a short page."""
        out: List[Row] = []
        offset = q.offset
        while True:
            page = await self.query(replace(q, limit=self.page_size, offset=offset))
            out.extend(page)
            if len(page) < self.page_size:
                return out
            offset += self.page_size

    async def latest_report_dates(self, where: Predicate, n: int) -> List[str]:
        """The `n` most recent distinct report dates matching `where`, newest first."""
        rows = await self.query(
            SocrataQuery(
                where=where,
                select=(DATE_FIELD,),
                group=DATE_FIELD,
                order=f"{DATE_FIELD} DESC",
                limit=n,
            )
        )
        return [str(r[DATE_FIELD]) for r in rows if r.get(DATE_FIELD)]
