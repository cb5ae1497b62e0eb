import pytest

from frontend.config import SessionConfig
from frontend.interaction.session import ChartSession
from frontend.persistence import ManualScheduler
from tests.fixtures import SpyGateway, chart_backend, org_chart


@pytest.fixture
def backend_parts():
    """(store, repository, gateway) over the org chart fixture."""
    return chart_backend(org_chart())


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def spy(backend_parts):
    return SpyGateway(backend_parts[2])


@pytest.fixture
def session(spy, scheduler):
    """Loaded, fully expanded session over the org chart."""
    chart_session = ChartSession(spy, SessionConfig(collapse_on_load=False), scheduler=scheduler)
    assert chart_session.load().is_success
    spy.calls.clear()
    return chart_session
