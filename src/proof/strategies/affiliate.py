"""Affiliate-linked: a tracking link is generated, nothing is fetched.

The link is attached to the submission at approval time.  It is a value,
never a gate on the asset becoming available.
"""

from __future__ import annotations

import logging
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from creatorflow.errors import StateConflictError
from creatorflow.proof.strategies.base import ProofStrategy
from creatorflow.submissions.models import ContentDistributionModel

logger = logging.getLogger(__name__)

DEFAULT_UTM_SOURCE = "socialshake"
DEFAULT_UTM_MEDIUM = "social"
FALLBACK_PRODUCT_LINK = "https://brandwebsite.com/product"


class AffiliateLinkStrategy(ProofStrategy):
    """Generate per-creator, per-video tracking links."""

    model = ContentDistributionModel.AFFILIATE_LINKED
    label = "affiliate link"

    def __init__(self, utm_source: str = DEFAULT_UTM_SOURCE) -> None:
        self.utm_source = utm_source

    def fetch(self, submission_id: str) -> str | None:
        raise StateConflictError(
            f"Affiliate submission {submission_id} generates its link, nothing to fetch"
        )

    def campaign(self, creator_id: str, submission_id: str) -> str:
        return f"creator{creator_id}_video{submission_id[:6]}"

    def generate_link(self, product_link: str, creator_id: str, submission_id: str) -> str:
        """Build the tracking link for a creator's video.

        Existing query parameters on the product link are kept;
        ``utm_source`` and ``utm_campaign`` are overwritten and
        ``utm_medium`` is only added when missing.  Deterministic for the
        same inputs.
        """
        campaign = self.campaign(creator_id, submission_id)
        link = product_link.strip() or FALLBACK_PRODUCT_LINK
        if not link.startswith("http"):
            link = f"https://{link}"

        parts = urlsplit(link)
        if not parts.netloc:
            logger.warning("Unparseable product link %r, using bare query", product_link)
            base = link.split("?")[0]
            return f"{base}?utm_source={self.utm_source}&utm_campaign={campaign}"

        params = [
            (k, v)
            for k, v in parse_qsl(parts.query, keep_blank_values=True)
            if k not in ("utm_source", "utm_campaign")
        ]
        params.append(("utm_source", self.utm_source))
        params.append(("utm_campaign", campaign))
        if not any(k == "utm_medium" for k, _ in params):
            params.append(("utm_medium", DEFAULT_UTM_MEDIUM))
        return urlunsplit(parts._replace(query=urlencode(params)))
