"""Pytest fixtures shared across the test suite."""

import pytest

from db import utils as db_utils


@pytest.fixture(autouse=True)
def reset_database_state():
    """Reset the process-wide fallback engine between tests."""

    db_utils.set_fallback_connection(None)
    yield
    db_utils.set_fallback_connection(None)
