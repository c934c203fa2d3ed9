"""Item lifecycle state machine.

::

    ACTIVE --trash--> TRASHED --purge--> DELETED
       ^                 |
       +----restore------+

There is no direct ACTIVE -> DELETED edge.  Disallowed transitions raise
``IllegalTransitionError``, which callers see as ``NotFound``.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING

from canopy.models.items import LifecycleState

from .exceptions import IllegalTransitionError

if TYPE_CHECKING:
    from canopy.models.items import ItemBase

logger = logging.getLogger(__name__)


class LifecycleEvent(str, Enum):
    """Operations that move an item between lifecycle states."""

    TRASH = "trash"
    RESTORE = "restore"
    PURGE = "purge"


TRANSITIONS: dict[tuple[LifecycleState, LifecycleEvent], LifecycleState] = {
    (LifecycleState.ACTIVE, LifecycleEvent.TRASH): LifecycleState.TRASHED,
    (LifecycleState.TRASHED, LifecycleEvent.RESTORE): LifecycleState.ACTIVE,
    (LifecycleState.TRASHED, LifecycleEvent.PURGE): LifecycleState.DELETED,
}

REQUIRED_STATE: dict[LifecycleEvent, LifecycleState] = {
    event: state for (state, event) in TRANSITIONS
}
"""The single state each event may be applied from."""


def next_state(state: LifecycleState, event: LifecycleEvent) -> LifecycleState:
    """Return the state reached by applying *event* in *state*."""
    try:
        return TRANSITIONS[(state, event)]
    except KeyError:
        raise IllegalTransitionError(
            details={"state": state.value, "event": event.value},
        ) from None


def apply_transition(item: ItemBase, event: LifecycleEvent) -> LifecycleState:
    """Move *item* to its next state and stamp the timestamps.

    ``PURGE`` only validates: the caller removes the row.
    """
    target = next_state(item.state, event)
    now = datetime.now(UTC)
    if target == LifecycleState.TRASHED:
        item.trashed_at = now
    elif target == LifecycleState.ACTIVE:
        item.trashed_at = None
    if target != LifecycleState.DELETED:
        item.state = target
        item.updated_at = now
    logger.debug("Item %s: %s -> %s", item.id, event.value, target.value)
    return target
