"""Lending strategy SDK."""

from .strategy import *  # noqa: F401,F403
from .strategy import __all__

__version__ = "0.1.0"
