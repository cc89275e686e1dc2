import pytest

from burst.clock import ClockSync
from burst.config import ScheduleConfig
from burst.models import Account, OrderIntent, Side
from burst.scheduling.deadline import DeadlineScheduler

from .fakes import FakeTime, FakeVenue


@pytest.fixture
def fake_time():
    return FakeTime(tick_ms=1)


@pytest.fixture
def venue(fake_time):
    return FakeVenue(fake_time, venue_offset_ms=2_500)


@pytest.fixture
def synced_clock(fake_time, venue):
    clock = ClockSync(venue, time_source=fake_time)
    clock.set_offset(venue.venue_offset_ms)
    return clock


@pytest.fixture
def scheduler(synced_clock, fake_time):
    return DeadlineScheduler(synced_clock, ScheduleConfig(), sleep=fake_time.sleep)


@pytest.fixture
def accounts():
    return [Account(name=f"acct-{i}", api_key=f"key-{i}", secret_key=f"secret-{i}") for i in (1, 2, 3)]


@pytest.fixture
def intent():
    return OrderIntent(symbol="REDUSDT", side=Side.BUY, price="0.9", quantity="100")
