"""Per-user contribution statistics."""

from __future__ import annotations

import logging
from datetime import date

from sitedpr.models import UserIdentity, UserProfile
from sitedpr.store.documents import USERS, DocumentStore

logger = logging.getLogger(__name__)

XP_PER_ENTRY = 10
XP_PER_LEVEL = 500


async def increment_user_stats(
    store: DocumentStore,
    identity: UserIdentity,
    count: int,
    today: date | None = None,
) -> UserProfile | None:
    """Credit ``count`` new entries to the user's profile.

    Anonymous sessions (no uid) are not tracked.
    """
    if not identity.uid or count <= 0:
        return None

    today_str = (today or date.today()).isoformat()
    existing = await store.get(USERS, identity.uid)
    if existing is None:
        profile = UserProfile(
            uid=identity.uid,
            display_name=identity.display_name or "",
            email=identity.email or "",
        )
    else:
        profile = UserProfile.from_document(existing)

    profile.total_entries += count
    profile.xp += count * XP_PER_ENTRY
    profile.level = profile.xp // XP_PER_LEVEL + 1
    if profile.last_active_date != today_str:
        profile.total_days += 1
        profile.last_active_date = today_str

    await store.save(USERS, profile.uid, profile.to_document())
    logger.debug("User %s now at %d entries", profile.uid, profile.total_entries)
    return profile
