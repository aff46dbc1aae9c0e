"""
Configuration for the repair engine.

Provides typed configuration for:
- Step retry policy (attempts, fixed backoff)
- Auto-apply and verification modes
- Diagnostic payload bounds
- Environment variable support
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Any, Self

import structlog

from autoheal.errors import ConfigError

logger = structlog.get_logger(__name__)


@dataclass(slots=True)
class RepairConfig:
    """Settings shared by the step executor, orchestrator and suite runner."""

    max_retries: int = 3
    """Attempts per step before failure analysis runs."""

    retry_delay_ms: int = 500
    """Fixed delay between attempts of the same step."""

    auto_apply: bool = False
    """Substitute the top suggestion for each failed step."""

    verify_repairs: bool = True
    """Re-run the repaired test in a fresh session after auto-apply."""

    headless: bool = True
    """Launch browsers headless when the driver factory supports it."""

    wait_for_text_timeout_ms: int = 10000
    """Timeout for wait steps that wait for text to appear."""

    scroll_distance_px: int = 500
    """Pixels scrolled by a scroll step."""

    max_alternatives: int = 10
    """Cap on alternative targets reported per failure."""

    max_visible_text: int = 20
    """Cap on visible text entries in a page context."""

    max_visible_text_length: int = 50
    """Texts at or above this length are treated as paragraphs and dropped."""

    def __post_init__(self) -> None:
        self._validate()

    def _validate(self) -> None:
        if self.max_retries < 1:
            raise ConfigError("max_retries must be at least 1")
        if self.retry_delay_ms < 0:
            raise ConfigError("retry_delay_ms must be non-negative")
        if self.wait_for_text_timeout_ms <= 0:
            raise ConfigError("wait_for_text_timeout_ms must be positive")
        if self.scroll_distance_px <= 0:
            raise ConfigError("scroll_distance_px must be positive")
        if self.max_alternatives < 1:
            raise ConfigError("max_alternatives must be at least 1")
        if self.max_visible_text < 1:
            raise ConfigError("max_visible_text must be at least 1")
        if self.max_visible_text_length < 1:
            raise ConfigError("max_visible_text_length must be at least 1")

    def with_overrides(self, **overrides: Any) -> Self:
        """
        Create a new config with the given fields replaced.

        None values are ignored so CLI flags can be passed through directly.
        Returns a new instance - does not mutate the original.
        """
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def load_repair_config(
    env_prefix: str = "AUTOHEAL_",
    defaults: RepairConfig | None = None,
) -> RepairConfig:
    """
    Load repair configuration from environment variables.

    Environment variables (all optional):
    - AUTOHEAL_MAX_RETRIES: Attempts per step
    - AUTOHEAL_RETRY_DELAY_MS: Delay between attempts
    - AUTOHEAL_AUTO_APPLY: Auto-apply top suggestions
    - AUTOHEAL_VERIFY_REPAIRS: Verify repaired tests
    - AUTOHEAL_HEADLESS: Run browsers headless
    - AUTOHEAL_WAIT_FOR_TEXT_TIMEOUT_MS: Text wait timeout
    - AUTOHEAL_SCROLL_DISTANCE_PX: Scroll step distance

    Args:
        env_prefix: Prefix for environment variables
        defaults: Default configuration to use as base

    Returns:
        Loaded and validated RepairConfig
    """
    base = defaults or RepairConfig()

    def get_int(key: str, default: int) -> int:
        value = os.environ.get(f"{env_prefix}{key}")
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            logger.warning(
                "Invalid integer value for config",
                key=key,
                value=value,
                using_default=default,
            )
            return default

    def get_bool(key: str, default: bool) -> bool:
        value = os.environ.get(f"{env_prefix}{key}")
        if value is None:
            return default
        return value.lower() in ("true", "1", "yes", "on")

    config = RepairConfig(
        max_retries=get_int("MAX_RETRIES", base.max_retries),
        retry_delay_ms=get_int("RETRY_DELAY_MS", base.retry_delay_ms),
        auto_apply=get_bool("AUTO_APPLY", base.auto_apply),
        verify_repairs=get_bool("VERIFY_REPAIRS", base.verify_repairs),
        headless=get_bool("HEADLESS", base.headless),
        wait_for_text_timeout_ms=get_int(
            "WAIT_FOR_TEXT_TIMEOUT_MS", base.wait_for_text_timeout_ms
        ),
        scroll_distance_px=get_int("SCROLL_DISTANCE_PX", base.scroll_distance_px),
        max_alternatives=base.max_alternatives,
        max_visible_text=base.max_visible_text,
        max_visible_text_length=base.max_visible_text_length,
    )

    logger.info(
        "Loaded repair config",
        max_retries=config.max_retries,
        retry_delay_ms=config.retry_delay_ms,
        auto_apply=config.auto_apply,
        verify_repairs=config.verify_repairs,
    )

    return config
