from __future__ import annotations

import pytest

from tests.unit.fakes import FakeClock, FakeHost


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def timing(clock: FakeClock) -> dict:
    return {"clock": clock, "sleep": clock.sleep}


@pytest.fixture
def fake_host() -> FakeHost:
    return FakeHost()
