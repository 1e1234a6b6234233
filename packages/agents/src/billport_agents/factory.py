"""Wire core components together from a BillPortConfig."""

import time
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable, Mapping, Optional, Union

import structlog

from billport_agents.config import BillPortConfig, LLMConfig, RateLimitConfig
from billport_agents.logging import configure_logging
from billport_core.bill_patterns import apply_recurring_detection
from billport_core.due_status import DueStatus, DueSummary, classify_bill, summarize_bills
from billport_core.email_extractor import scan_messages
from billport_core.exceptions import ConfigurationError
from billport_core.extraction_guards import FileHashRegistry
from billport_core.insight_analyzer import InsightService
from billport_core.llm_insights import create_insight_generator
from billport_core.models import Bill, EmailBillCandidate, RecurringBillCandidate
from billport_core.rate_limit import Clock, RateLimiter, RateLimitResult
from billport_core.recurring_detector import RecurringBillDetector
from billport_core.reminders import Reminder, build_reminders

logger = structlog.get_logger()

DateLike = Union[date, datetime]


def build_insight_service(llm: LLMConfig) -> InsightService:
    """Create an InsightService, with the Anthropic generator when configured.

    Raises:
        ConfigurationError: If ``llm.required`` is set but no generator
            can be built.
    """
    if not llm.enabled:
        logger.info("insight_generator_disabled", reason="disabled_in_config")
        return InsightService()
    generator = create_insight_generator(
        api_key=llm.api_key,
        model=llm.model,
        max_tokens=llm.max_tokens,
        timeout=llm.timeout,
        temperature=llm.temperature,
    )
    if generator is None and llm.required:
        raise ConfigurationError(
            "Generative insights are required but no API key is configured",
            config_key="BILLPORT_LLM_API_KEY",
            expected="Anthropic API key (or ANTHROPIC_API_KEY)",
        )
    return InsightService(generator)


def build_extraction_limiter(limits: RateLimitConfig, clock: Clock = time.monotonic) -> RateLimiter:
    return RateLimiter(limits.extraction_max_requests, limits.extraction_window_seconds, clock)


def build_welcome_email_limiter(
    limits: RateLimitConfig, clock: Clock = time.monotonic
) -> RateLimiter:
    return RateLimiter(limits.welcome_email_max_requests, limits.welcome_email_window_seconds, clock)


@dataclass
class BillPortServices:
    """Configured components shared by request handlers."""

    config: BillPortConfig
    insights: InsightService
    recurring: RecurringBillDetector
    extraction_limiter: RateLimiter
    welcome_email_limiter: RateLimiter
    file_hashes: FileHashRegistry

    def classify(self, bill: Bill, now: Optional[DateLike] = None) -> DueStatus:
        return classify_bill(bill, now=now, due_soon_days=self.config.analysis.due_soon_days)

    def summarize(self, bills: Iterable[Bill], now: Optional[DateLike] = None) -> DueSummary:
        return summarize_bills(bills, now=now, due_soon_days=self.config.analysis.due_soon_days)

    def reminders(self, bills: Iterable[Bill], now: Optional[DateLike] = None) -> list[Reminder]:
        return build_reminders(bills, now=now, lead_days=self.config.analysis.due_soon_days)

    def detect_bill_patterns(self, bills: Iterable[Bill]) -> list[Bill]:
        return apply_recurring_detection(list(bills))

    def detect_recurring(
        self, transactions: Iterable[Mapping[str, Any]]
    ) -> list[RecurringBillCandidate]:
        return self.recurring.detect(transactions)

    def scan_emails(self, messages: Iterable[Mapping[str, Any]]) -> list[EmailBillCandidate]:
        return scan_messages(messages, min_confidence=self.config.analysis.email_min_confidence)

    def check_extraction_allowed(
        self, user_id: str, ip_address: Optional[str] = None
    ) -> RateLimitResult:
        """Apply the per-user scan limit, then the per-address one."""
        result = self.extraction_limiter.check(user_id)
        if not result.allowed or not ip_address:
            return result
        return self.extraction_limiter.check(f"ip_{ip_address}")

    def should_send_welcome_email(self, email: str) -> bool:
        return self.welcome_email_limiter.check(email.strip().lower()).allowed


def build_services(
    config: Optional[BillPortConfig] = None,
    clock: Clock = time.monotonic,
    *,
    configure_logs: bool = False,
) -> BillPortServices:
    """Build every configured component from ``config`` (default: environment).

    With ``configure_logs`` the structlog setup is applied first, so the
    build itself is logged with the configured renderer and level.
    """
    config = config or BillPortConfig()
    if configure_logs:
        configure_logging(config)
    services = BillPortServices(
        config=config,
        insights=build_insight_service(config.llm),
        recurring=RecurringBillDetector(window_days=config.analysis.recurring_window_days),
        extraction_limiter=build_extraction_limiter(config.rate_limit, clock),
        welcome_email_limiter=build_welcome_email_limiter(config.rate_limit, clock),
        file_hashes=FileHashRegistry(config.rate_limit.file_hash_ttl_seconds, clock=clock),
    )
    logger.info(
        "services_built",
        env=config.env,
        generative_insights=services.insights.generative_enabled,
        due_soon_days=config.analysis.due_soon_days,
    )
    return services
