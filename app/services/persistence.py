"""
Persistence Gateway - save a generation run's artifacts without losing any.

save_batch(artifacts, token) walks the batch sequentially:

  no token                → nothing attempted; artifacts returned in-memory
  store accepted          → candidate id replaced by the store id
  StoreUnauthorizedError  → stop; this and every later artifact stays
                            in-memory (no surrogate), session_invalid=True
  StoreUnreachableError   → local surrogate (`local_<hex>`, is_local=True),
                            continue with the next artifact
  any other exception     → logged, then the same surrogate path

Invariant: len(outcome) == len(artifacts) for every combination of store
responses, and the result keeps generation order.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field, replace
from typing import Iterator, Optional, Sequence

from app.core.errors import StoreUnauthorizedError, StoreUnreachableError
from app.services.assembler import Artifact, new_local_id, to_store_payload
from app.services.store_client import ArtifactStore

logger = logging.getLogger(__name__)


class PersistStatus(str, enum.Enum):
    persisted = "persisted"              # every artifact got a store id
    partial = "partial"                  # at least one local surrogate
    skipped = "skipped"                  # no credential, nothing attempted
    session_invalid = "session_invalid"  # store rejected the credential


@dataclass
class BatchOutcome:
    artifacts: list[Artifact] = field(default_factory=list)
    status: PersistStatus = PersistStatus.persisted
    attempted: int = 0

    def __len__(self) -> int:
        return len(self.artifacts)

    def __iter__(self) -> Iterator[Artifact]:
        return iter(self.artifacts)

    def __getitem__(self, index: int) -> Artifact:
        return self.artifacts[index]

    @property
    def session_invalid(self) -> bool:
        return self.status is PersistStatus.session_invalid

    @property
    def persisted_count(self) -> int:
        return sum(1 for a in self.artifacts if a.is_persisted)

    @property
    def local_count(self) -> int:
        return sum(1 for a in self.artifacts if a.is_local)


def make_surrogate(artifact: Artifact) -> Artifact:
    return replace(artifact, id=new_local_id(), is_local=True, is_persisted=False)


class PersistenceGateway:
    def __init__(self, store: ArtifactStore):
        self.store = store

    def save(self, artifact: Artifact, token: str) -> Artifact:
        """Persist one artifact. Store errors propagate to the caller."""
        stored = self.store.save(to_store_payload(artifact), token)
        return replace(artifact, id=str(stored["id"]), is_persisted=True, is_local=False)

    def save_batch(self, artifacts: Sequence[Artifact], token: Optional[str]) -> BatchOutcome:
        if not token:
            logger.info(
                "No credential supplied; returning %d artifact(s) without persisting",
                len(artifacts),
            )
            return BatchOutcome(artifacts=list(artifacts), status=PersistStatus.skipped)

        outcome = BatchOutcome()
        for index, artifact in enumerate(artifacts):
            outcome.attempted += 1
            try:
                saved = self.save(artifact, token)
            except StoreUnauthorizedError:
                remaining = len(artifacts) - index
                logger.warning(
                    "Artifact store rejected the credential; %d artifact(s) kept in memory",
                    remaining,
                )
                outcome.artifacts.extend(artifacts[index:])
                outcome.status = PersistStatus.session_invalid
                return outcome
            except StoreUnreachableError as exc:
                surrogate = make_surrogate(artifact)
                logger.warning(
                    "Could not persist %s artifact %r (%s); kept as %s",
                    artifact.kind, artifact.title, exc.message, surrogate.id,
                )
                outcome.artifacts.append(surrogate)
                outcome.status = PersistStatus.partial
                continue
            except Exception:
                surrogate = make_surrogate(artifact)
                logger.exception(
                    "Unexpected store failure for %s artifact %r; kept as %s",
                    artifact.kind, artifact.title, surrogate.id,
                )
                outcome.artifacts.append(surrogate)
                outcome.status = PersistStatus.partial
                continue
            logger.debug("Persisted %s artifact %r as %s", saved.kind, saved.title, saved.id)
            outcome.artifacts.append(saved)
        return outcome
