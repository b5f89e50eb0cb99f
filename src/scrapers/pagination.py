"""Sequential offset pagination and per-item detail enrichment.

Pages are requested strictly one after another: the next offset is only
requested once the previous page has been processed, because termination
depends on what earlier pages returned. A failing page aborts the whole run
and the error reaches the caller. Detail enrichment is a separate pass in
which a failing item is logged and dropped.
"""

import asyncio
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, Protocol

from loguru import logger
from pydantic import BaseModel, Field

from src.config.settings import AppSettings
from src.normalization.dedupe import dedupe
from .base_scraper import FetchCancelledError, ScraperError


class PaginationConfig(BaseModel):
    page_size: int = Field(100, ge=1)
    max_pages: int = Field(40, ge=1)
    max_consecutive_empty_pages: int = Field(1, ge=1)
    page_delay_seconds: float = Field(0.2, ge=0)
    page_jitter_seconds: float = Field(0.0, ge=0)
    detail_delay_seconds: float = Field(0.1, ge=0)

    @classmethod
    def from_settings(cls, app_settings: AppSettings) -> "PaginationConfig":
        return cls(
            page_size=app_settings.page_size,
            max_pages=app_settings.max_pages,
            max_consecutive_empty_pages=app_settings.max_consecutive_empty_pages,
            page_delay_seconds=app_settings.page_delay_seconds,
            page_jitter_seconds=app_settings.page_jitter_seconds,
            detail_delay_seconds=app_settings.detail_delay_seconds,
        )


@dataclass
class Page:
    items: List[Any]
    # None when the source gives no explicit signal
    has_more: Optional[bool] = None


class PageSource(Protocol):
    async def fetch_page(self, offset: int, limit: int) -> Page: ...


@dataclass
class PaginationState:
    offset: int = 0
    page: int = 0
    consecutive_empty_pages: int = 0
    total_pages_checked: int = 0
    items: List[Any] = field(default_factory=list)


def _check_cancelled(cancel_event: Optional[asyncio.Event]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise FetchCancelledError("Fetch cancelled by caller")


async def _pause(
    delay: float, jitter: float, cancel_event: Optional[asyncio.Event]
) -> None:
    _check_cancelled(cancel_event)
    await asyncio.sleep(delay + (random.uniform(0, jitter) if jitter else 0.0))
    _check_cancelled(cancel_event)


async def fetch_all(
    source: PageSource,
    config: PaginationConfig,
    cancel_event: Optional[asyncio.Event] = None,
    deduplicate: bool = True,
) -> List[Any]:
    """Collects every page of `source`.

    Items are deduplicated by match id unless `deduplicate` is False; per-map
    records of one series share that id and must all reach map grouping.
    """
    state = PaginationState()

    while True:
        _check_cancelled(cancel_event)
        logger.info(
            f"Requesting page {state.page + 1}/{config.max_pages}: offset={state.offset}, limit={config.page_size}"
        )
        page = await source.fetch_page(state.offset, config.page_size)
        state.total_pages_checked += 1
        state.page += 1
        state.offset += config.page_size

        if page.items:
            state.consecutive_empty_pages = 0
            state.items.extend(page.items)
            logger.debug(f"Collected {len(state.items)} items so far")
        else:
            state.consecutive_empty_pages += 1
            if state.consecutive_empty_pages >= config.max_consecutive_empty_pages:
                logger.info("Empty page threshold reached, no more data")
                break

        if page.has_more is False:
            logger.info("Source reports no more data")
            break
        if state.total_pages_checked >= config.max_pages:
            logger.warning(
                f"Stopping pagination at the {config.max_pages}-page safety cap"
            )
            break

        await _pause(
            config.page_delay_seconds, config.page_jitter_seconds, cancel_event
        )

    unique = dedupe(state.items) if deduplicate else state.items
    logger.info(
        f"Pagination finished after {state.total_pages_checked} pages: {len(unique)} kept of {len(state.items)} items"
    )
    return unique


async def enrich_details(
    items: List[Any],
    fetch_detail: Callable[[Any], Awaitable[Optional[Any]]],
    config: PaginationConfig,
    cancel_event: Optional[asyncio.Event] = None,
) -> List[Any]:
    """Fetches the detail of every item in order; failed or empty details are dropped."""
    detailed: List[Any] = []

    for index, item in enumerate(items):
        _check_cancelled(cancel_event)
        if index:
            await _pause(config.detail_delay_seconds, 0.0, cancel_event)
        try:
            detail = await fetch_detail(item)
        except FetchCancelledError:
            raise
        except ScraperError as e:
            logger.warning(f"Dropping item {index + 1}/{len(items)}: {e}")
            continue
        if detail is None:
            logger.debug(f"No detail for item {index + 1}/{len(items)}, skipping")
            continue
        detailed.append(detail)

    logger.info(f"Got details for {len(detailed)} of {len(items)} items")
    return detailed
