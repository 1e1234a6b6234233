"""BillPort Agents - configuration and wiring for bill services."""

from billport_agents.config import (
    AnalysisConfig,
    BillPortConfig,
    LLMConfig,
    RateLimitConfig,
)
from billport_agents.factory import BillPortServices, build_services
from billport_agents.logging import configure_logging

__version__ = "0.1.0"

__all__ = [
    "AnalysisConfig",
    "BillPortConfig",
    "BillPortServices",
    "LLMConfig",
    "RateLimitConfig",
    "build_services",
    "configure_logging",
]
