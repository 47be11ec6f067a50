import os
from collections.abc import Generator

import pytest

# Keep pytest output high-signal by disabling outbound Sentry capture in tests.
os.environ["SENTRY_DSN"] = ""

from eventcoupons.core import metrics  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_metrics() -> Generator[None, None, None]:
    # Counters are process-global and would otherwise leak across tests.
    metrics.reset()
    yield
    metrics.reset()
