"""Action kinds handled by the Floodgate batching engine."""

from __future__ import annotations

ActionKind = str

COPY_ACTION: ActionKind = "copyAction"
PROMOTE_ACTION: ActionKind = "promoteAction"
DELETE_ACTION: ActionKind = "deleteAction"
