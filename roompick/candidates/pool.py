from __future__ import annotations

import logging
from collections.abc import Iterable

from ..config import DEFAULT_ENGINE_CONFIG, EngineConfig
from ..errors import UpstreamUnavailableError
from ..rooms.models import RoomConditions
from .budget import (
    filter_shops_by_budget_range,
    get_budget_codes_for_range,
    normalize_budget_range,
)
from .models import FetchMeta, Shop
from .source import HotPepperClient

logger = logging.getLogger(__name__)


def dedupe_shops(shops: Iterable[Shop]) -> list[Shop]:
    """Drop repeated ids, keeping the first occurrence."""
    seen: set[str] = set()
    unique: list[Shop] = []
    for shop in shops:
        if shop.id not in seen:
            seen.add(shop.id)
            unique.append(shop)
    return unique


def _fetch_paged(
    client: HotPepperClient,
    area: str,
    budget_codes: list[str],
    limit: int,
) -> list[Shop]:
    collected: list[Shop] = []
    start = 1
    page_size = client.config.page_size
    while len(collected) < limit:
        page = client.search(area, budget_codes, start=start, count=page_size)
        collected = dedupe_shops(collected + page)
        if len(page) < page_size:
            break
        start += len(page)
    return collected


def populate_pool(
    conditions: RoomConditions,
    client: HotPepperClient,
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
) -> tuple[list[Shop], FetchMeta]:
    """Fetch, filter and de-duplicate the candidate pool for a room.

    Upstream failures never propagate: a failed or empty budget-filtered
    fetch is retried once without budget codes or paging, and whatever that
    yields (possibly nothing) becomes the pool.
    """
    budget_range = normalize_budget_range(conditions.budget_min, conditions.budget_max)
    budget_codes = get_budget_codes_for_range(budget_range)
    fallback_used = False

    try:
        fetched = _fetch_paged(client, conditions.area, budget_codes, config.candidate_pool_size)
    except UpstreamUnavailableError:
        logger.warning("Shop fetch failed for area %r, retrying unfiltered", conditions.area, exc_info=True)
        fetched = []

    if not fetched:
        fallback_used = True
        try:
            fetched = dedupe_shops(client.search(conditions.area))
        except UpstreamUnavailableError:
            logger.warning("Unfiltered shop fetch failed for area %r", conditions.area, exc_info=True)
            fetched = []

    filtered = filter_shops_by_budget_range(fetched, budget_range)
    budget_filter_used = budget_range is not None and bool(filtered)
    pool = (filtered if budget_filter_used else fetched)[: config.candidate_pool_size]

    meta = FetchMeta(
        fetched_count=len(fetched),
        filtered_count=len(filtered),
        candidate_pool_count=len(pool),
        budget_codes=budget_codes,
        budget_filter_used=budget_filter_used,
        fallback_used=fallback_used,
        range=budget_range,
    )
    logger.info(
        "Populated pool for area %r: %d shops (fetched=%d, fallback=%s)",
        conditions.area, len(pool), len(fetched), fallback_used,
    )
    return pool, meta
