"""Proof sources — where Spark codes and posted TikTok links come from.

A source answers "is the proof available yet?".  ``None`` means not yet;
``ProofNotFoundYet`` is raised when the upstream could not be asked in time
(timeouts, unreachable service), which callers treat the same way.
"""

from __future__ import annotations

import json
import logging
import os
import socket
import threading
import urllib.error
import urllib.parse
import urllib.request
from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel

from creatorflow.errors import ProofNotFoundYet

logger = logging.getLogger(__name__)


class ProofSource(ABC):
    """External source of distribution proofs."""

    @abstractmethod
    def fetch_spark_code(self, submission_id: str) -> str | None:
        """Return the provider-issued Spark ad code, or None if not available yet."""

    @abstractmethod
    def fetch_tiktok_link(self, submission_id: str) -> str | None:
        """Return the posted-content URL, or None if not available yet."""

    def discard(self, submission_id: str) -> None:
        """Forget any proof held for a submission. Default: nothing held."""


class InboxProofSource(ProofSource):
    """Proofs deposited by creators, held until the engine asks for them."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._spark_codes: dict[str, str] = {}
        self._tiktok_links: dict[str, str] = {}

    def deposit_spark_code(self, submission_id: str, code: str) -> None:
        with self._lock:
            self._spark_codes[submission_id] = code.strip()

    def deposit_tiktok_link(self, submission_id: str, link: str) -> None:
        with self._lock:
            self._tiktok_links[submission_id] = link.strip()

    def discard(self, submission_id: str) -> None:
        with self._lock:
            self._spark_codes.pop(submission_id, None)
            self._tiktok_links.pop(submission_id, None)

    def fetch_spark_code(self, submission_id: str) -> str | None:
        with self._lock:
            return self._spark_codes.get(submission_id) or None

    def fetch_tiktok_link(self, submission_id: str) -> str | None:
        with self._lock:
            return self._tiktok_links.get(submission_id) or None


class ProofSourceConfig(BaseModel):
    """Configuration for the HTTP proof source."""

    endpoint: str = ""
    api_key: str = ""
    timeout: float = 10.0

    @property
    def is_configured(self) -> bool:
        return bool(self.endpoint)

    @classmethod
    def from_env(cls) -> ProofSourceConfig:
        """Create config from environment variables."""
        return cls(
            endpoint=os.environ.get("CREATORFLOW_PROOF_ENDPOINT", ""),
            api_key=os.environ.get("CREATORFLOW_PROOF_API_KEY", ""),
        )


class HttpProofSource(ProofSource):
    """Fetch proofs from a JSON HTTP service.

    ``GET {endpoint}/submissions/{id}/spark-code`` answers ``{"sparkCode": ...}``
    and ``GET {endpoint}/submissions/{id}/tiktok-link`` answers
    ``{"tiktokLink": ...}``.  A 404 means not yet available.
    """

    def __init__(self, config: ProofSourceConfig) -> None:
        self.config = config
        self.base_url = config.endpoint.rstrip("/")

    def _get(self, path: str) -> Any:
        url = f"{self.base_url}{path}"
        headers = {"Accept": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        req = urllib.request.Request(url, method="GET", headers=headers)

        try:
            with urllib.request.urlopen(req, timeout=self.config.timeout) as resp:
                return json.loads(resp.read().decode("utf-8"))
        except urllib.error.HTTPError as exc:
            if exc.code == 404:
                return None
            raise ProofNotFoundYet(f"Proof service answered HTTP {exc.code} for {path}") from exc
        except (urllib.error.URLError, socket.timeout, TimeoutError) as exc:
            raise ProofNotFoundYet(f"Proof service unreachable for {path}: {exc}") from exc
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise ProofNotFoundYet(
                f"Proof service returned an unreadable body for {path}: {exc}"
            ) from exc

    def _fetch(self, submission_id: str, resource: str, key: str) -> str | None:
        quoted = urllib.parse.quote(submission_id, safe="")
        data = self._get(f"/submissions/{quoted}/{resource}")
        if not isinstance(data, dict):
            return None
        value = data.get(key)
        if not isinstance(value, str) or not value.strip():
            return None
        return value.strip()

    def fetch_spark_code(self, submission_id: str) -> str | None:
        return self._fetch(submission_id, "spark-code", "sparkCode")

    def fetch_tiktok_link(self, submission_id: str) -> str | None:
        return self._fetch(submission_id, "tiktok-link", "tiktokLink")
