from .artifact import Artifact
from .action_record import ActionRecord

__all__ = [
    "Artifact",
    "ActionRecord",
]
