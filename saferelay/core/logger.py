import logging
import structlog
from structlog.contextvars import bind_contextvars
import sentry_sdk
from prometheus_client import Counter
from saferelay.core.config import settings

# --- Prometheus Metrics ---
GAS_ESTIMATES = Counter("saferelay_gas_estimates_total", "Total number of safeTxGas estimates produced", ["strategy"])
ESTIMATION_FAILURES = Counter("saferelay_estimation_failures_total", "Total number of failed gas estimations", ["reason"])
BALANCE_CHECKS = Counter("saferelay_balance_checks_total", "Total number of wallet balance checks", ["outcome"])
RELAY_SUBMISSIONS = Counter("saferelay_relay_submissions_total", "Total number of relay submissions", ["outcome"])

def configure_logging():
    if settings.SENTRY_DSN:
        sentry_sdk.init(dsn=settings.SENTRY_DSN.get_secret_value(), traces_sample_rate=1.0)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(settings.LOG_LEVEL.upper())),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

def get_logger(name: str):
    return structlog.get_logger(name)

def bind_wallet_context(wallet_address: str):
    """Tag every subsequent log line of the current task with the wallet."""
    bind_contextvars(wallet=wallet_address)

configure_logging()
log = get_logger("SafeRelay.System")
