from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Optional

from .errors import StorageFailure
from .models import Activity
from .store import PersonStore

log = logging.getLogger(__name__)


class ActivityType(str, Enum):
    MEMBER_ADDED = "Added Family Member"
    MEMBER_DELETED = "Deleted Family Member"
    RELATIONSHIP_UPDATED = "Updated Relationship"
    RELATIONSHIP_REMOVED = "Removed Relationship"
    RELATIONSHIPS_REPAIRED = "Repaired Relationships"
    FAMILY_EXPORTED = "Exported Family Tree"


def log_activity(
    store: PersonStore,
    user_id: str,
    action: ActivityType | str,
    *,
    entity_id: Optional[str] = None,
    details: str = "",
) -> Optional[Activity]:
    """Append an activity entry. A failed write is logged, never raised.

    The mutation being recorded has already committed by the time this runs.
    """
    activity = Activity(
        user_id=user_id or "system",
        action=action.value if isinstance(action, ActivityType) else str(action),
        entity_id=entity_id,
        details=details,
        timestamp=int(time.time() * 1000),
    )
    try:
        store.record_activity(activity)
    except StorageFailure as e:
        log.warning("Could not record activity %r: %s", activity.action, e)
        return None
    return activity
