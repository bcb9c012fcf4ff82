"""
Tests for the store client and the Persistence Gateway.

Covered scenarios:
  D) store answers 401 to every save  → abort after the first call,
                                        session_invalid, no surrogates
  E) store unreachable on every call  → every artifact is a local
                                        surrogate, count preserved

Additional:
  - count invariant across mixed store responses
  - no token → nothing sent, artifacts returned in-memory
  - malformed store responses become surrogates
  - real store round trip through the /artifacts routes
"""
import itertools
import json

import httpx
import pytest

from app.core.errors import StoreUnauthorizedError, StoreUnreachableError
from app.services.analysis import generate_artifacts
from app.services.persistence import PersistStatus, PersistenceGateway
from app.services.store_client import HttpArtifactStore

from conftest import NOW, event, mock_store


def _artifacts(students):
    events = [
        event("disrupting_class", "s1", days_ago=1, subject="Math", time_of_day="Morning"),
        event("fighting", "s1", days_ago=2, subject="Math", time_of_day="Morning", severity="high"),
        event("using_phone", "s1", days_ago=3, subject="Math", time_of_day="Morning"),
        event("teamwork", "s2", days_ago=2, subject="Art", time_of_day="Afternoon"),
        event("not_listening", "s2", days_ago=10, subject="Math", time_of_day="Morning"),
    ]
    artifacts = generate_artifacts(events, students, NOW).artifacts
    assert len(artifacts) >= 4
    return artifacts


class _Recorder:
    """MockTransport handler that replays a sequence of responses."""

    def __init__(self, responses):
        self.responses = itertools.cycle(responses)
        self.requests: list[httpx.Request] = []
        self.ids = itertools.count(1)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        kind = next(self.responses)
        if kind == "ok":
            body = json.loads(request.content)
            return httpx.Response(201, json={**body, "id": next(self.ids)})
        if kind == "401":
            return httpx.Response(401, json={"code": "INVALID_TOKEN"})
        if kind == "500":
            return httpx.Response(500, text="boom")
        if kind == "garbage":
            return httpx.Response(200, text="<html>not json</html>")
        if kind == "no-id":
            return httpx.Response(201, json={"title": "x"})
        raise httpx.ConnectError("connection refused", request=request)


class TestStoreClient:
    def test_sends_bearer_token(self):
        recorder = _Recorder(["ok"])
        store = mock_store(recorder)
        body = store.save({"title": "t"}, "tok-1")
        assert body["id"] == 1
        assert recorder.requests[0].headers["Authorization"] == "Bearer tok-1"
        assert recorder.requests[0].url.path == "/artifacts"

    def test_401_is_unauthorized(self):
        with pytest.raises(StoreUnauthorizedError):
            mock_store(_Recorder(["401"])).save({}, "tok")

    def test_other_errors_are_unreachable(self):
        for kind in ("500", "garbage", "no-id", "down"):
            with pytest.raises(StoreUnreachableError):
                mock_store(_Recorder([kind])).save({}, "tok")

    def test_status_code_is_kept(self):
        with pytest.raises(StoreUnreachableError) as exc_info:
            mock_store(_Recorder(["500"])).save({}, "tok")
        assert exc_info.value.status_code == 500


class TestGateway:
    def test_all_saved(self, students):
        artifacts = _artifacts(students)
        outcome = PersistenceGateway(mock_store(_Recorder(["ok"]))).save_batch(artifacts, "tok")
        assert outcome.status is PersistStatus.persisted
        assert len(outcome) == len(artifacts)
        assert [a.id for a in outcome] == [str(i) for i in range(1, len(artifacts) + 1)]
        assert all(a.is_persisted and not a.is_local for a in outcome)
        assert [a.title for a in outcome] == [a.title for a in artifacts]

    def test_d_unauthorized_aborts_batch(self, students):
        artifacts = _artifacts(students)
        recorder = _Recorder(["401"])
        outcome = PersistenceGateway(mock_store(recorder)).save_batch(artifacts, "expired")
        assert len(recorder.requests) == 1
        assert outcome.session_invalid
        assert outcome.attempted == 1
        assert len(outcome) == len(artifacts)
        assert outcome.local_count == 0
        assert [a.id for a in outcome] == [a.id for a in artifacts]
        assert not any(a.is_persisted for a in outcome)

    def test_unauthorized_mid_batch_keeps_saved_prefix(self, students):
        artifacts = _artifacts(students)
        outcome = PersistenceGateway(
            mock_store(_Recorder(["ok", "ok", "401"]))
        ).save_batch(artifacts, "tok")
        assert outcome.session_invalid
        assert outcome.persisted_count == 2
        assert len(outcome) == len(artifacts)

    def test_e_store_down_gives_surrogates(self, students):
        artifacts = _artifacts(students)
        outcome = PersistenceGateway(mock_store(_Recorder(["down"]))).save_batch(artifacts, "tok")
        assert outcome.status is PersistStatus.partial
        assert len(outcome) == len(artifacts)
        assert all(a.is_local and a.id.startswith("local_") for a in outcome)
        assert len({a.id for a in outcome}) == len(artifacts)

    def test_any_store_exception_gives_surrogates(self, students):
        class DownStore:
            def save(self, payload, token):
                raise ConnectionError("network down")

        artifacts = _artifacts(students)
        outcome = PersistenceGateway(DownStore()).save_batch(artifacts, "tok")
        assert outcome.status is PersistStatus.partial
        assert len(outcome) == len(artifacts)
        assert outcome.local_count == len(artifacts)
        assert [a.title for a in outcome] == [a.title for a in artifacts]

    def test_store_body_without_id_gives_surrogate(self, students):
        class NoIdStore:
            def save(self, payload, token):
                return {"title": payload["title"]}

        artifacts = _artifacts(students)
        outcome = PersistenceGateway(NoIdStore()).save_batch(artifacts, "tok")
        assert len(outcome) == len(artifacts)
        assert all(a.is_local for a in outcome)

    @pytest.mark.parametrize("pattern", [
        ["ok", "down"],
        ["500", "ok", "garbage"],
        ["no-id", "ok", "ok", "down"],
        ["ok", "ok", "ok", "401"],
        ["down", "401"],
    ])
    def test_count_invariant(self, students, pattern):
        artifacts = _artifacts(students)
        outcome = PersistenceGateway(mock_store(_Recorder(pattern))).save_batch(artifacts, "tok")
        assert len(outcome) == len(artifacts)
        assert [a.kind for a in outcome] == [a.kind for a in artifacts]

    def test_no_token_skips_persistence(self, students):
        artifacts = _artifacts(students)
        recorder = _Recorder(["ok"])
        outcome = PersistenceGateway(mock_store(recorder)).save_batch(artifacts, None)
        assert outcome.status is PersistStatus.skipped
        assert recorder.requests == []
        assert len(outcome) == len(artifacts)
        assert not any(a.is_local for a in outcome)

    def test_empty_batch(self):
        outcome = PersistenceGateway(mock_store(_Recorder(["ok"]))).save_batch([], "tok")
        assert len(outcome) == 0
        assert outcome.status is PersistStatus.persisted


class TestGatewayAgainstStore:
    def test_saves_into_artifact_store(self, client, auth_headers, students):
        token = auth_headers["Authorization"].split(" ", 1)[1]
        artifacts = _artifacts(students)
        outcome = PersistenceGateway(HttpArtifactStore(client=client)).save_batch(artifacts, token)
        assert outcome.status is PersistStatus.persisted
        stored = client.get(f"/artifacts/{outcome[0].id}", headers=auth_headers)
        assert stored.status_code == 200
        assert stored.json()["title"] == artifacts[0].title
        assert stored.json()["data_snapshot"]["total_events"] == 5

    def test_wrong_token_is_session_invalid(self, client, students):
        artifacts = _artifacts(students)
        outcome = PersistenceGateway(HttpArtifactStore(client=client)).save_batch(artifacts, "nope")
        assert outcome.session_invalid
        assert len(outcome) == len(artifacts)
