import sentry_sdk
import structlog

from logistics_api.settings.sentry import SentryConfig

logger = structlog.get_logger(__name__)


def setup_sentry(config: SentryConfig, environment: str, release: str) -> bool:
    """Initialize Sentry when a DSN is configured; returns whether it was enabled."""
    if not config.DSN:
        logger.debug("Sentry DSN not configured, error reporting disabled")
        return False

    sentry_sdk.init(
        dsn=config.DSN,
        environment=environment,
        release=release,
        send_default_pii=config.SEND_DEFAULT_PII,
        traces_sample_rate=config.TRACES_SAMPLE_RATE,
    )
    logger.info("Sentry initialized", environment=environment)
    return True
