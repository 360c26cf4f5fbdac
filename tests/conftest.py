import logging

import pytest

from quotebot.logging import logger


@pytest.fixture(scope="session", autouse=True)
def _set_quotebot_logging():
    """
    Set the logging level to DEBUG for the test run
    """
    logger.setLevel(logging.DEBUG)
