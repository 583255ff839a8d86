"""Configuration handling for gitlane"""

import os
from dataclasses import dataclass
from typing import Optional

ENV_INTEGRATION_TEST = "GITLANE_INTEGRATION_TEST"
ENV_DEMO = "GITLANE_DEMO"


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").lower() in ("1", "true", "yes")


@dataclass
class Config:
    """Configuration for gitlane with validation."""

    # Background refresh, in seconds (0 disables it)
    refresh_interval: int = 10
    # How often a context with an inline status is redrawn
    spinner_rate_ms: int = 50
    # Minimum delay between flushes of streamed command output
    output_flush_ms: int = 30

    # Persisted state location (None = ~/.gitlane/state.json)
    state_file: Optional[str] = None

    verbose: bool = False
    debug: bool = False

    # Test and recording modes
    integration_test: bool = False
    demo: bool = False

    # Runtime lock-order validation for domain mutexes
    lock_order_checks: bool = True

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate_refresh_interval()
        self._validate_spinner_rate()
        self._validate_output_flush()

    def _validate_refresh_interval(self):
        """Validate refresh_interval is not negative."""
        if self.refresh_interval < 0:
            raise ValueError(f"refresh_interval must not be negative, got {self.refresh_interval}")

    def _validate_spinner_rate(self):
        """Validate spinner_rate_ms is positive."""
        if self.spinner_rate_ms <= 0:
            raise ValueError(f"spinner_rate_ms must be positive, got {self.spinner_rate_ms}")

    def _validate_output_flush(self):
        """Validate output_flush_ms is positive."""
        if self.output_flush_ms <= 0:
            raise ValueError(f"output_flush_ms must be positive, got {self.output_flush_ms}")

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        return {
            "refresh_interval": self.refresh_interval,
            "spinner_rate_ms": self.spinner_rate_ms,
            "output_flush_ms": self.output_flush_ms,
            "state_file": self.state_file,
            "verbose": self.verbose,
            "debug": self.debug,
            "integration_test": self.integration_test,
            "demo": self.demo,
            "lock_order_checks": self.lock_order_checks,
        }

    def get(self, key: str, default=None):
        """Get config value by key."""
        return getattr(self, key, default)

    @classmethod
    def from_dict(cls, config_dict: dict) -> "Config":
        """Create Config from dictionary, ignoring unknown keys."""
        known_fields = set(cls.__dataclass_fields__)
        filtered = {k: v for k, v in config_dict.items() if k in known_fields}
        return cls(**filtered)

    @classmethod
    def from_env(cls, **overrides) -> "Config":
        """Create Config with the test/demo toggles read from the environment."""
        values = {
            "integration_test": _env_flag(ENV_INTEGRATION_TEST),
            "demo": _env_flag(ENV_DEMO),
        }
        values.update(overrides)
        return cls.from_dict(values)
