"""Unified configuration loaded from .creatorflow.toml, env vars, and CLI flags.

Loading order: defaults → TOML file → env vars → CLI flags.
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from creatorflow.submissions.models import DEFAULT_MAX_REVISIONS

if TYPE_CHECKING:
    from creatorflow.integrations.stripe import StripeConfig
    from creatorflow.notifications import SlackWebhookConfig
    from creatorflow.proof.sources import ProofSourceConfig

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".creatorflow.toml"
CONFIG_SEARCH_PATHS = [
    Path("."),
]
GLOBAL_CONFIG_PATH = Path.home() / ".config" / "creatorflow" / "config.toml"


class StorageConfig(BaseModel):
    """[storage] section."""

    data_dir: str = "./.creatorflow"


class ReviewConfig(BaseModel):
    """[review] section."""

    default_max_revisions: int = Field(default=DEFAULT_MAX_REVISIONS, ge=0)


class PaymentsConfig(BaseModel):
    """[payments] section."""

    processor: str = "manual"  # "manual" or "stripe"
    currency: str = "usd"
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    max_network_retries: int = 2


class ProofConfig(BaseModel):
    """[proof] section."""

    endpoint: str = ""
    api_key: str = ""
    timeout: float = 10.0


class AffiliateConfig(BaseModel):
    """[affiliate] section."""

    utm_source: str = "socialshake"


class NotificationConfig(BaseModel):
    """[notifications] section."""

    slack_webhook: str = ""
    enabled: bool = True

    @property
    def is_configured(self) -> bool:
        return self.enabled and bool(self.slack_webhook)


class CreatorflowConfig(BaseModel):
    """Top-level configuration model."""

    storage: StorageConfig = Field(default_factory=StorageConfig)
    review: ReviewConfig = Field(default_factory=ReviewConfig)
    payments: PaymentsConfig = Field(default_factory=PaymentsConfig)
    proof: ProofConfig = Field(default_factory=ProofConfig)
    affiliate: AffiliateConfig = Field(default_factory=AffiliateConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)

    @property
    def data_path(self) -> Path:
        return Path(self.storage.data_dir).expanduser()

    def to_stripe_config(self) -> StripeConfig:
        """Convert to StripeConfig for the Stripe processor."""
        from creatorflow.integrations.stripe import StripeConfig

        return StripeConfig(
            secret_key=self.payments.stripe_secret_key,
            webhook_secret=self.payments.stripe_webhook_secret,
            max_network_retries=self.payments.max_network_retries,
        )

    def to_proof_source_config(self) -> ProofSourceConfig:
        """Convert to ProofSourceConfig for the HTTP proof source."""
        from creatorflow.proof.sources import ProofSourceConfig

        return ProofSourceConfig(
            endpoint=self.proof.endpoint,
            api_key=self.proof.api_key,
            timeout=self.proof.timeout,
        )

    def to_slack_config(self) -> SlackWebhookConfig:
        """Convert to SlackWebhookConfig for Slack notifications."""
        from creatorflow.notifications import SlackWebhookConfig

        return SlackWebhookConfig(webhook_url=self.notifications.slack_webhook)


def load_config(path: str | Path | None = None) -> CreatorflowConfig:
    """Load configuration from a TOML file.

    Search order:
    1. Explicit path (if provided)
    2. .creatorflow.toml in CWD
    3. ~/.config/creatorflow/config.toml

    Then overlay environment variables.

    Args:
        path: Explicit path to a TOML file.

    Returns:
        Merged CreatorflowConfig.
    """
    data: dict[str, object] = {}

    if path is not None:
        toml_path = Path(path)
        if toml_path.exists():
            data = _load_toml(toml_path)
        else:
            logger.warning("Config file not found: %s", toml_path)
    else:
        for search_dir in CONFIG_SEARCH_PATHS:
            candidate = search_dir / CONFIG_FILENAME
            if candidate.exists():
                data = _load_toml(candidate)
                logger.info("Loaded config from %s", candidate)
                break
        if not data and GLOBAL_CONFIG_PATH.exists():
            data = _load_toml(GLOBAL_CONFIG_PATH)
            logger.info("Loaded config from %s", GLOBAL_CONFIG_PATH)

    config = CreatorflowConfig.model_validate(data) if data else CreatorflowConfig()

    return _apply_env_vars(config)


def merge_cli_overrides(config: CreatorflowConfig, **cli_kwargs: object) -> CreatorflowConfig:
    """Overlay explicitly-set CLI flags onto the config.

    Only overrides values where the CLI flag was explicitly provided
    (i.e., not None).
    """
    data = config.model_dump()

    mapping: dict[str, tuple[str, str]] = {
        "data_dir": ("storage", "data_dir"),
        "max_revisions": ("review", "default_max_revisions"),
        "processor": ("payments", "processor"),
        "currency": ("payments", "currency"),
        "proof_endpoint": ("proof", "endpoint"),
    }

    for key, value in cli_kwargs.items():
        if value is None:
            continue
        if key in mapping:
            section, field = mapping[key]
            data[section][field] = value

    return CreatorflowConfig.model_validate(data)


def _load_toml(path: Path) -> dict[str, object]:
    """Load a TOML file and return the data dict."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as exc:
        logger.warning("Failed to parse %s: %s", path, exc)
        return {}


def _apply_env_vars(config: CreatorflowConfig) -> CreatorflowConfig:
    """Apply environment variable overrides to config."""
    data = config.model_dump()

    env_mapping: dict[str, tuple[str, str]] = {
        "CREATORFLOW_DATA_DIR": ("storage", "data_dir"),
        "CREATORFLOW_PAYMENT_PROCESSOR": ("payments", "processor"),
        "CREATORFLOW_CURRENCY": ("payments", "currency"),
        "STRIPE_SECRET_KEY": ("payments", "stripe_secret_key"),
        "STRIPE_WEBHOOK_SECRET": ("payments", "stripe_webhook_secret"),
        "CREATORFLOW_PROOF_ENDPOINT": ("proof", "endpoint"),
        "CREATORFLOW_PROOF_API_KEY": ("proof", "api_key"),
        "CREATORFLOW_UTM_SOURCE": ("affiliate", "utm_source"),
        "CREATORFLOW_SLACK_WEBHOOK": ("notifications", "slack_webhook"),
    }

    for env_var, (section, field) in env_mapping.items():
        value = os.environ.get(env_var)
        if value is not None:
            data[section][field] = value

    max_raw = os.environ.get("CREATORFLOW_MAX_REVISIONS")
    if max_raw is not None:
        data["review"]["default_max_revisions"] = int(max_raw)
    enabled_raw = os.environ.get("CREATORFLOW_NOTIFICATIONS_ENABLED")
    if enabled_raw is not None:
        data["notifications"]["enabled"] = enabled_raw.lower() in ("true", "1", "yes")

    return CreatorflowConfig.model_validate(data)
