"""
Tests for error handling: structured error responses, HTTP status codes,
and the custom exception classes.
"""
import pytest

from app.core.errors import (
    ActionRecordNotFoundError,
    ArtifactNotFoundError,
    ArtifactNotPersistedError,
    InsightsException,
    InvalidTokenError,
    MissingCredentialError,
    NotAuthenticatedError,
    StoreUnauthorizedError,
    StoreUnreachableError,
)


# ---------------------------------------------------------------------------
# Unit tests on exception classes
# ---------------------------------------------------------------------------

class TestExceptionClasses:
    def test_artifact_not_found(self):
        err = ArtifactNotFoundError(7)
        assert err.http_status == 404
        assert err.code == "ARTIFACT_NOT_FOUND"
        assert "7" in err.message
        assert err.to_dict()["details"]["artifact_id"] == "7"

    def test_action_record_not_found(self):
        err = ActionRecordNotFoundError(3)
        assert err.http_status == 404
        assert err.code == "ACTION_RECORD_NOT_FOUND"

    def test_auth_errors(self):
        assert NotAuthenticatedError().http_status == 401
        assert InvalidTokenError().code == "INVALID_TOKEN"

    def test_artifact_not_persisted(self):
        err = ArtifactNotPersistedError("local_abc")
        assert err.http_status == 409
        assert err.code == "ARTIFACT_NOT_PERSISTED"

    def test_missing_credential(self):
        assert MissingCredentialError().code == "MISSING_CREDENTIAL"

    def test_store_unauthorized(self):
        err = StoreUnauthorizedError("/artifacts")
        assert err.code == "SESSION_INVALID"
        assert err.details["path"] == "/artifacts"

    def test_store_unreachable_without_status(self):
        err = StoreUnreachableError("down")
        assert err.status_code is None
        assert "details" not in err.to_dict()

    def test_store_unreachable_with_status(self):
        err = StoreUnreachableError("boom", status_code=503)
        assert err.to_dict()["details"]["status_code"] == 503

    @pytest.mark.parametrize("cls", [
        ArtifactNotFoundError,
        ActionRecordNotFoundError,
        StoreUnreachableError,
    ])
    def test_hierarchy(self, cls):
        assert issubclass(cls, InsightsException)


# ---------------------------------------------------------------------------
# Envelope rendering through the app
# ---------------------------------------------------------------------------

class TestErrorEnvelope:
    def test_not_found_envelope(self, client, auth_headers):
        r = client.get("/artifacts/424242", headers=auth_headers)
        assert r.status_code == 404
        body = r.json()
        assert set(body) == {"code", "message", "details"}
        assert body["details"]["artifact_id"] == "424242"

    def test_validation_envelope(self, client, auth_headers):
        r = client.post("/artifacts/1/feedback", json={}, headers=auth_headers)
        assert r.status_code == 422
        body = r.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert body["details"]["errors"][0]["field"] == "rating"

    def test_bad_path_param(self, client, auth_headers):
        r = client.get("/artifacts/not-a-number", headers=auth_headers)
        assert r.status_code == 422
        assert r.json()["code"] == "VALIDATION_ERROR"
