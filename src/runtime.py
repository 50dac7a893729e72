"""Wire the engine and its collaborators from configuration."""

from __future__ import annotations

import logging

from creatorflow.config import CreatorflowConfig
from creatorflow.notifications import (
    LoggingNotificationChannel,
    NotificationChannel,
    SlackWebhookChannel,
)
from creatorflow.payments import ManualPaymentProcessor, PaymentCoordinator, PaymentProcessor
from creatorflow.proof import (
    DistributionProofCoordinator,
    HttpProofSource,
    InboxProofSource,
    ProofSource,
)
from creatorflow.submissions.engine import SubmissionLifecycleEngine
from creatorflow.submissions.store import JsonSubmissionRepository, SubmissionRepository

logger = logging.getLogger(__name__)


def create_processor(config: CreatorflowConfig) -> PaymentProcessor:
    """Create the payment processor named in ``[payments] processor``.

    Raises:
        ValueError: If the processor is unknown or Stripe is not configured.
    """
    name = config.payments.processor.lower()
    if name == "manual":
        return ManualPaymentProcessor()
    if name == "stripe":
        from creatorflow.integrations.stripe import StripePaymentProcessor

        stripe_config = config.to_stripe_config()
        if not stripe_config.is_configured:
            raise ValueError("Stripe processor selected but STRIPE_SECRET_KEY is not set")
        return StripePaymentProcessor(stripe_config)
    raise ValueError(f"Unknown payment processor: {config.payments.processor!r}")


def create_proof_source(config: CreatorflowConfig) -> ProofSource:
    source_config = config.to_proof_source_config()
    if source_config.is_configured:
        return HttpProofSource(source_config)
    return InboxProofSource()


def create_notification_channel(config: CreatorflowConfig) -> NotificationChannel | None:
    if not config.notifications.enabled:
        return None
    if config.notifications.is_configured:
        return SlackWebhookChannel(config.to_slack_config())
    return LoggingNotificationChannel()


def build_engine(
    config: CreatorflowConfig,
    *,
    repository: SubmissionRepository | None = None,
    processor: PaymentProcessor | None = None,
    source: ProofSource | None = None,
    notifications: NotificationChannel | None = None,
) -> SubmissionLifecycleEngine:
    """Assemble a SubmissionLifecycleEngine; explicit collaborators win over config."""
    if repository is None:
        repository = JsonSubmissionRepository(config.data_path)
    payments = PaymentCoordinator(
        repository,
        processor if processor is not None else create_processor(config),
        currency=config.payments.currency,
    )
    proofs = DistributionProofCoordinator(
        source if source is not None else create_proof_source(config),
        utm_source=config.affiliate.utm_source,
    )
    if notifications is None:
        notifications = create_notification_channel(config)
    logger.debug("Engine built with %s", type(repository).__name__)
    return SubmissionLifecycleEngine(
        repository,
        proofs=proofs,
        payments=payments,
        notifications=notifications,
    )
