import pytest

from stream_core.domain.models import RetryPolicy
from stream_core.providers.registry import ProviderConfig
from stream_core.tests.helpers import FakeClock


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def provider():
    return ProviderConfig(api_url="http://stream.test", retry=RetryPolicy(max_retries=3, retry_delay=1.0))
