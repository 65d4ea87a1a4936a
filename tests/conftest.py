import pytest

from rxcell import Scheduler, use_scheduler


@pytest.fixture(autouse=True)
def scheduler():
    """Every test gets its own scheduler (and so its own tracker and queue)."""
    with use_scheduler(Scheduler()) as s:
        yield s
