"""
Shared pytest fixtures for syncdb tests.
"""

import logging

import pytest

from syncdb import MemoryStorage, SyncServer


@pytest.fixture
def storage() -> MemoryStorage:
    """Fresh in-memory storage for one client."""
    return MemoryStorage()


@pytest.fixture
def server() -> SyncServer:
    """Fresh in-process server at version 0."""
    return SyncServer()


@pytest.fixture(autouse=True)
def reset_syncdb_logging():
    """Reset logging state before each test.

    Ensures tests start with a clean logging configuration:
    - Removes all handlers except NullHandler
    - Resets level to NOTSET (inherit from parent)
    """
    logger = logging.getLogger("syncdb")

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        if not isinstance(handler, logging.NullHandler):
            handler.close()
    logger.addHandler(logging.NullHandler())
    logger.setLevel(logging.NOTSET)

    yield

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        if not isinstance(handler, logging.NullHandler):
            handler.close()
    logger.addHandler(logging.NullHandler())
    logger.setLevel(logging.NOTSET)
