import pytest

from src.normalization.normalizer import Normalizer
from src.scrapers.base_scraper import RetryPolicy
from src.scrapers.pagination import PaginationConfig
from tests.helpers import TEAM_ID, fixed_clock


@pytest.fixture
def clock():
    return fixed_clock


@pytest.fixture
def normalizer():
    return Normalizer(team_id=TEAM_ID, date_format="%d.%m.%Y", clock=fixed_clock)


@pytest.fixture
def fast_pagination():
    return PaginationConfig(
        page_size=2,
        max_pages=10,
        page_delay_seconds=0,
        detail_delay_seconds=0,
    )


@pytest.fixture
def no_retry():
    return RetryPolicy(max_attempts=1, min_wait=0, max_wait=0)

