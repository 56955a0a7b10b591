"""
Google Docs Exporter
====================

Fetches hosted Google Docs through the Drive v3 export endpoint instead of
scraping their HTML viewer.

The document must be shared with the service account email. Export
failures are reported as DocumentAccessError with a reason that tells the
operator whether the document is gone or just not shared.

Configuration:
    GOOGLE_SERVICE_ACCOUNT_KEY: Service account key JSON (the whole file content)
"""

import json
import logging
import re
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import requests
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import AuthorizedSession
from google.oauth2 import service_account

from .errors import AccessFailure, DocumentAccessError

logger = logging.getLogger(__name__)


GOOGLE_DOC_HOSTS = ("docs.google.com", "drive.google.com")

DOC_ID_PATTERNS = [
    re.compile(r"/document/d/([a-zA-Z0-9_-]+)"),
    re.compile(r"/file/d/([a-zA-Z0-9_-]+)"),
    re.compile(r"[?&]id=([a-zA-Z0-9_-]+)"),
]

# Drive 403 reasons unrelated to sharing, e.g. a PDF behind a /file/d/ link
NON_PERMISSION_403_REASONS = frozenset({
    "fileNotExportable",
    "exportSizeLimitExceeded",
    "rateLimitExceeded",
    "userRateLimitExceeded",
})


def _error_reason(response: requests.Response) -> Optional[str]:
    """First `error.errors[].reason` of a Drive error body, if any."""
    try:
        errors = response.json().get("error", {}).get("errors") or []
    except (ValueError, AttributeError):
        return None
    for error in errors:
        if isinstance(error, dict) and error.get("reason"):
            return error["reason"]
    return None


def is_google_docs_url(url: str) -> bool:
    """True when the URL points at Google Docs or Google Drive."""
    host = (urlparse(url).hostname or "").lower()
    return host in GOOGLE_DOC_HOSTS


def extract_google_doc_id(url: str) -> Optional[str]:
    """
    Extract the document id from the common Docs/Drive URL shapes.

    Examples:
        https://docs.google.com/document/d/DOC_ID/edit
        https://drive.google.com/file/d/DOC_ID/view
        https://drive.google.com/open?id=DOC_ID
    """
    for pattern in DOC_ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


class GoogleDocsExporter:
    """Exports Google Docs via the Drive API using a service account."""

    EXPORT_URL = "https://www.googleapis.com/drive/v3/files/{doc_id}/export"
    SCOPES = ["https://www.googleapis.com/auth/drive.readonly"]

    def __init__(
        self,
        service_account_info: Optional[Dict[str, Any]] = None,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
    ):
        self.service_account_info = service_account_info
        self.timeout = timeout
        self._session = session

    @classmethod
    def from_settings(cls, settings=None) -> "GoogleDocsExporter":
        """Build an exporter from GOOGLE_SERVICE_ACCOUNT_KEY (may be unset)."""
        from ..config import get_settings

        cfg = (settings or get_settings()).crawler
        info = None
        if cfg.google_service_account_key:
            try:
                info = json.loads(cfg.google_service_account_key)
            except json.JSONDecodeError as e:
                raise ValueError("GOOGLE_SERVICE_ACCOUNT_KEY is not valid JSON") from e
        return cls(service_account_info=info, timeout=cfg.request_timeout)

    @property
    def session(self) -> requests.Session:
        """Lazily build an authorized session from the service account."""
        if self._session is None:
            if not self.service_account_info:
                raise ValueError("GOOGLE_SERVICE_ACCOUNT_KEY environment variable is not set")
            try:
                credentials = service_account.Credentials.from_service_account_info(
                    self.service_account_info, scopes=self.SCOPES,
                )
            except KeyError as e:
                raise ValueError(f"Service account key is missing field {e}") from e
            self._session = AuthorizedSession(credentials)
        return self._session

    def export(self, doc_id: str, mime_type: str = "text/html") -> str:
        """
        Export a document's content.

        Args:
            doc_id: Google Drive file id
            mime_type: Export format

        Returns:
            Exported document body

        Raises:
            DocumentAccessError: not found, permission denied, missing
                credentials, or any other export failure
        """
        try:
            response = self.session.get(
                self.EXPORT_URL.format(doc_id=doc_id),
                params={"mimeType": mime_type},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise DocumentAccessError(doc_id, AccessFailure.UNKNOWN, str(e)) from e
        except (GoogleAuthError, ValueError) as e:
            raise DocumentAccessError(doc_id, AccessFailure.NOT_CONFIGURED, str(e)) from e

        if response.status_code == 404:
            raise DocumentAccessError(doc_id, AccessFailure.NOT_FOUND)
        if response.status_code == 403:
            reason = _error_reason(response)
            if reason in NON_PERMISSION_403_REASONS:
                raise DocumentAccessError(doc_id, AccessFailure.UNKNOWN, f"HTTP 403 {reason}")
            raise DocumentAccessError(doc_id, AccessFailure.PERMISSION_DENIED)
        if response.status_code == 401:
            raise DocumentAccessError(doc_id, AccessFailure.NOT_CONFIGURED, "Service account rejected")
        if response.status_code != 200:
            raise DocumentAccessError(
                doc_id, AccessFailure.UNKNOWN,
                f"HTTP {response.status_code}: {response.text[:200]}",
            )

        logger.info(f"Exported Google Doc {doc_id} ({len(response.text)} chars)")
        return response.text
