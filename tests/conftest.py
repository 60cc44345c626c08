"""Shared pytest fixtures for cellflow tests."""

import pytest

from cellflow import use_runtime


@pytest.fixture(autouse=True)
def runtime():
    """Run every test in a fresh runtime so tracker and transaction state never leak."""
    with use_runtime() as rt:
        yield rt
