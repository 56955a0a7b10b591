"""
Tests for Google Docs detection and export.

The authorized session is mocked; no Google API calls are made.
"""

from unittest.mock import Mock

import pytest
import requests

from rag_context.rag.errors import AccessFailure, DocumentAccessError
from rag_context.rag.google_docs import (
    GoogleDocsExporter,
    extract_google_doc_id,
    is_google_docs_url,
)


class TestGoogleDocsUrls:
    """Tests for URL recognition and id extraction."""

    def test_recognizes_docs_and_drive(self):
        assert is_google_docs_url("https://docs.google.com/document/d/abc/edit")
        assert is_google_docs_url("https://drive.google.com/file/d/abc/view")

    def test_rejects_other_hosts(self):
        assert not is_google_docs_url("https://example.com/docs.google.com/document/d/abc")
        assert not is_google_docs_url("https://google.com/")

    def test_document_path(self):
        assert extract_google_doc_id("https://docs.google.com/document/d/1AbC_d-9/edit#heading") == "1AbC_d-9"

    def test_file_path(self):
        assert extract_google_doc_id("https://drive.google.com/file/d/XYZ123/view?usp=sharing") == "XYZ123"

    def test_id_query(self):
        assert extract_google_doc_id("https://drive.google.com/open?id=Q1w2e3") == "Q1w2e3"

    def test_no_id(self):
        assert extract_google_doc_id("https://docs.google.com/") is None


class TestGoogleDocsExporter:
    """Tests for export status mapping."""

    def _exporter(self, status=200, text="<p>Doc body</p>", payload=None):
        response = Mock(status_code=status, text=text)
        if payload is None:
            response.json.side_effect = ValueError("No JSON object could be decoded")
        else:
            response.json.return_value = payload
        session = Mock()
        session.get.return_value = response
        return GoogleDocsExporter(session=session, timeout=5.0), session

    def test_export_returns_body(self):
        exporter, session = self._exporter()

        assert exporter.export("doc1") == "<p>Doc body</p>"
        session.get.assert_called_once_with(
            "https://www.googleapis.com/drive/v3/files/doc1/export",
            params={"mimeType": "text/html"},
            timeout=5.0,
        )

    def test_not_found(self):
        exporter, _ = self._exporter(status=404)

        with pytest.raises(DocumentAccessError) as exc_info:
            exporter.export("doc1")
        assert exc_info.value.reason is AccessFailure.NOT_FOUND
        assert exc_info.value.doc_id == "doc1"

    def test_permission_denied(self):
        exporter, _ = self._exporter(status=403)

        with pytest.raises(DocumentAccessError) as exc_info:
            exporter.export("doc1")
        assert exc_info.value.reason is AccessFailure.PERMISSION_DENIED
        assert "service account" in str(exc_info.value)

    def test_permission_denied_reason(self):
        exporter, _ = self._exporter(status=403, payload={
            "error": {"code": 403, "errors": [{"reason": "insufficientFilePermissions"}]},
        })

        with pytest.raises(DocumentAccessError) as exc_info:
            exporter.export("doc1")
        assert exc_info.value.reason is AccessFailure.PERMISSION_DENIED

    def test_non_exportable_file_not_a_sharing_problem(self):
        """A PDF behind a /file/d/ link is 403 fileNotExportable, not a permission issue."""
        exporter, _ = self._exporter(status=403, payload={
            "error": {
                "code": 403,
                "message": "Export only supports Docs Editors files.",
                "errors": [{"domain": "global", "reason": "fileNotExportable"}],
            },
        })

        with pytest.raises(DocumentAccessError) as exc_info:
            exporter.export("pdf1")
        assert exc_info.value.reason is AccessFailure.UNKNOWN
        assert "fileNotExportable" in str(exc_info.value)
        assert "Share the document" not in str(exc_info.value)

    def test_other_status_unknown(self):
        exporter, _ = self._exporter(status=500, text="backend error")

        with pytest.raises(DocumentAccessError) as exc_info:
            exporter.export("doc1")
        assert exc_info.value.reason is AccessFailure.UNKNOWN
        assert "HTTP 500" in str(exc_info.value)

    def test_network_failure_unknown(self):
        session = Mock()
        session.get.side_effect = requests.ConnectionError("refused")
        exporter = GoogleDocsExporter(session=session)

        with pytest.raises(DocumentAccessError) as exc_info:
            exporter.export("doc1")
        assert exc_info.value.reason is AccessFailure.UNKNOWN

    def test_missing_credentials(self):
        exporter = GoogleDocsExporter()

        with pytest.raises(DocumentAccessError) as exc_info:
            exporter.export("doc1")
        assert exc_info.value.reason is AccessFailure.NOT_CONFIGURED

    def test_incomplete_credentials(self):
        exporter = GoogleDocsExporter(service_account_info={"type": "service_account"})

        with pytest.raises(DocumentAccessError) as exc_info:
            exporter.export("doc1")
        assert exc_info.value.reason is AccessFailure.NOT_CONFIGURED


class TestExporterFromSettings:
    """Tests for settings-driven construction."""

    def _settings(self, key):
        settings = Mock()
        settings.crawler.google_service_account_key = key
        settings.crawler.request_timeout = 7.0
        return settings

    def test_unset_key(self):
        exporter = GoogleDocsExporter.from_settings(self._settings(None))
        assert exporter.service_account_info is None
        assert exporter.timeout == 7.0

    def test_parses_json_key(self):
        exporter = GoogleDocsExporter.from_settings(self._settings('{"client_email": "svc@x.iam"}'))
        assert exporter.service_account_info == {"client_email": "svc@x.iam"}

    def test_invalid_json(self):
        with pytest.raises(ValueError, match="not valid JSON"):
            GoogleDocsExporter.from_settings(self._settings("{not json"))
