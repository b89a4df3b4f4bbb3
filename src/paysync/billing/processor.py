"""
Processor sync markers.

Every entity the payment processor knows about carries a ``ProcessorItem``:
the remote id (once assigned) and where the local copy stands relative
to the remote one.
"""

from enum import Enum
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field


class ProcessorState(str, Enum):
    """Sync status of one entity against the payment processor."""

    INITIAL = "initial"  # created locally, never confirmed remotely
    SAVED = "saved"  # identical to the remote copy
    CHANGED = "changed"  # modified locally since the last confirmed save
    LOCAL = "local"  # intentionally never synced


# Order in which a confirmed sync may move an entity
_RANK = {
    ProcessorState.INITIAL: 0,
    ProcessorState.CHANGED: 1,
    ProcessorState.SAVED: 2,
}


class ProcessorItem(BaseModel):
    """Remote id plus sync state."""

    model_config = ConfigDict(validate_assignment=True)

    id: str | None = Field(None, description="Identifier assigned by the processor")
    state: ProcessorState = Field(ProcessorState.INITIAL, description="Sync state")

    @property
    def is_remote(self) -> bool:
        """True once the processor has assigned an id."""
        return bool(self.id)


class HasProcessor(Protocol):
    processor: ProcessorItem


def mark_changed(entity: HasProcessor) -> bool:
    """
    Flag an entity as needing a push.

    Only entities already known remotely can become CHANGED. Drafts keep
    their INITIAL state and are pushed as creations; LOCAL entities are
    never pushed.

    Returns:
        True when the state was set to CHANGED
    """
    if not entity.processor.is_remote or entity.processor.state == ProcessorState.LOCAL:
        return False
    entity.processor.state = ProcessorState.CHANGED
    return True


def is_forward(before: ProcessorState, after: ProcessorState) -> bool:
    """
    Check a reconciliation transition.

    A confirmed sync may only move INITIAL or CHANGED towards SAVED.
    LOCAL entities are outside the state machine and always pass.
    """
    if ProcessorState.LOCAL in (before, after):
        return True
    return _RANK[after] >= _RANK[before]
