"""HotPepper gourmet search client."""
from __future__ import annotations

import logging
from collections.abc import Sequence
from types import TracebackType
from typing import Any

import httpx
from pydantic import ValidationError

from ..errors import UpstreamUnavailableError
from .config import DEFAULT_CANDIDATE_SOURCE_CONFIG, CandidateSourceConfig
from .models import Shop

logger = logging.getLogger(__name__)


class HotPepperClient:
    """Fetches candidate shops for an area keyword.

    Usage:
        with HotPepperClient() as client:
            shops = client.search("Shibuya", budget_codes=["B002", "B003"])
    """

    def __init__(
        self,
        config: CandidateSourceConfig = DEFAULT_CANDIDATE_SOURCE_CONFIG,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.config = config
        self._http_client = http_client or httpx.Client(timeout=config.timeout)

    def __enter__(self) -> "HotPepperClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        self._http_client.close()

    def search(
        self,
        keyword: str,
        budget_codes: Sequence[str] | None = None,
        start: int = 1,
        count: int | None = None,
    ) -> list[Shop]:
        """Return one page of shops matching *keyword*.

        Raises:
            UpstreamUnavailableError: missing API key, transport/HTTP
                failure, or a body that is not a valid result document.
        """
        if not self.config.api_key:
            raise UpstreamUnavailableError("HOTPEPPER_API_KEY is not configured")

        params: dict[str, Any] = {
            "key": self.config.api_key,
            "keyword": keyword,
            "start": start,
            "count": count or self.config.page_size,
            "format": "json",
        }
        if budget_codes:
            params["budget"] = ",".join(budget_codes)

        try:
            response = self._http_client.get(self.config.base_url, params=params)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise UpstreamUnavailableError(f"Shop search failed: {exc}") from exc

        results = payload.get("results") if isinstance(payload, dict) else None
        if not isinstance(results, dict):
            raise UpstreamUnavailableError("Shop search returned no results object")
        if results.get("error"):
            raise UpstreamUnavailableError(f"Shop search error: {results['error']}")

        shops: list[Shop] = []
        for raw in results.get("shop", []) or []:
            try:
                shops.append(Shop.model_validate(raw))
            except ValidationError:
                logger.warning("Skipping malformed shop record: %r", raw.get("id") if isinstance(raw, dict) else raw)
        return shops
