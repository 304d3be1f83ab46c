"""kether configuration management."""

import logging

from pydantic import Field
from pydantic_settings import BaseSettings

from .communication.tags import DEFAULT_ALLOWED_TAGS

logger = logging.getLogger("kether.config")

DEFAULT_ECHO_TIMEOUT = 5.0


class KetherSettings(BaseSettings):
    """Settings loaded from environment variables or .env file."""

    # Delivery correlation
    echo_timeout: float = Field(
        default=DEFAULT_ECHO_TIMEOUT,
        description="Seconds to wait for the echo of a sent group message",
    )

    # Notification streams
    notification_throttle: float = Field(
        default=0.025,
        description="Minimum spacing in seconds between two notifications",
    )
    stream_backoff: float = Field(
        default=0.25,
        description="Sleep in seconds before surfacing a stream failure",
    )

    # Markup
    allowed_tags: list[str] = Field(
        default_factory=lambda: sorted(DEFAULT_ALLOWED_TAGS),
        description="Tag names recognised by the markup parser",
    )

    log_level: str = Field(default="INFO", description="Log level for the CLI")

    model_config = {"env_prefix": "KETHER_", "env_file": ".env", "extra": "ignore"}


def load_settings(**overrides) -> KetherSettings:
    """Load settings from environment, applying keyword overrides."""
    settings = KetherSettings(**overrides)

    if settings.echo_timeout <= 0:
        logger.warning(
            f"echo_timeout={settings.echo_timeout} is not positive; "
            f"using default {DEFAULT_ECHO_TIMEOUT}s"
        )
        settings.echo_timeout = DEFAULT_ECHO_TIMEOUT

    return settings
