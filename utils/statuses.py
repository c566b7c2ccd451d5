"""Progress status vocabularies and the forward-only transition helper."""

import logging

logger = logging.getLogger(__name__)

LOCKED = "locked"
UNLOCKED = "unlocked"
NOT_STARTED = "not_started"
IN_PROGRESS = "in_progress"
COMPLETED = "completed"

TRACK_STATUSES = (LOCKED, UNLOCKED, IN_PROGRESS, COMPLETED)
MODULE_STATUSES = TRACK_STATUSES
LESSON_STATUSES = (NOT_STARTED, IN_PROGRESS, COMPLETED)

# locked and not_started share the bottom rank; a missing status counts as locked
STATUS_RANK = {
    None: 0,
    LOCKED: 0,
    NOT_STARTED: 0,
    UNLOCKED: 1,
    IN_PROGRESS: 2,
    COMPLETED: 3,
}


def status_rank(status):
    return STATUS_RANK.get(status, 0)


def is_locked(status):
    return status is None or status == LOCKED


def advance_status(entry, new_status):
    """Move ``entry.status`` forward to ``new_status``.

    Returns True when the status changed. A request that would lower the rank
    is ignored, so a completed entry stays completed.
    """
    current = entry.status
    if current == new_status:
        return False
    if current is not None and status_rank(new_status) <= status_rank(current):
        logger.debug("Ignoring status regression %s -> %s on %r", current, new_status, entry)
        return False
    entry.status = new_status
    return True
