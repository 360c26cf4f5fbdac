import logging

"""
Create a package-wide logger. Messages are not propagated to the root logger, so applications
that want quoter output in their own log stream should attach a handler here.
"""

_handler = logging.StreamHandler()
_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))

logger = logging.getLogger(__name__)
logger.propagate = False
logger.setLevel(logging.INFO)
logger.addHandler(_handler)
