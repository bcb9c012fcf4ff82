"""
Apply/Feedback Recorder - turn "apply top action" into a durable ActionRecord.

apply(artifact, token, chosen_action=None, feedback=None) -> ApplyOutcome

  * chosen_action defaults to the artifact's top action.
  * Already applied with the same action → the existing record is returned
    and the store is not called again.
  * Local surrogates and in-memory artifacts have no store id → failure
    outcome, nothing sent.
  * On success the artifact's applied flag is set in place.
  * On any failure the artifact is left untouched; the caller decides
    whether to retry.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from app.core.errors import (
    ArtifactNotPersistedError,
    InsightsException,
    MissingCredentialError,
    StoreUnauthorizedError,
    StoreUnreachableError,
)
from app.services.assembler import ActionRecord, Artifact, action_record_from_store
from app.services.store_client import ArtifactStore

logger = logging.getLogger(__name__)


@dataclass
class ApplyOutcome:
    ok: bool
    record: Optional[ActionRecord] = None
    created: bool = False
    error: Optional[InsightsException] = None

    @property
    def session_invalid(self) -> bool:
        return isinstance(self.error, StoreUnauthorizedError)


class ApplyRecorder:
    def __init__(self, store: ArtifactStore):
        self.store = store

    def apply(
        self,
        artifact: Artifact,
        token: Optional[str],
        chosen_action: Optional[str] = None,
        feedback: Optional[dict] = None,
    ) -> ApplyOutcome:
        action = chosen_action or artifact.top_action
        if action is None:
            raise ValueError(f"Artifact {artifact.id} has no actions to apply.")

        if (
            artifact.is_applied
            and artifact.applied_action == action
            and artifact.action_record is not None
        ):
            return ApplyOutcome(ok=True, record=artifact.action_record, created=False)

        if not token:
            return ApplyOutcome(ok=False, error=MissingCredentialError())
        if not artifact.is_persisted or artifact.is_local:
            return ApplyOutcome(ok=False, error=ArtifactNotPersistedError(artifact.id))

        payload: dict = {"chosen_action": action}
        if feedback:
            payload["feedback"] = feedback
        try:
            body = self.store.apply(artifact.id, payload, token)
            record = action_record_from_store(body["action_record"])
        except (StoreUnauthorizedError, StoreUnreachableError) as exc:
            logger.warning("Applying artifact %s failed: %s", artifact.id, exc.message)
            return ApplyOutcome(ok=False, error=exc)
        except (KeyError, TypeError) as exc:
            logger.warning("Applying artifact %s returned a malformed record: %s", artifact.id, exc)
            return ApplyOutcome(
                ok=False,
                error=StoreUnreachableError("Artifact store returned a malformed action record."),
            )

        artifact.is_applied = True
        artifact.applied_action = action
        artifact.action_record = record
        return ApplyOutcome(ok=True, record=record, created=bool(body.get("created", True)))
