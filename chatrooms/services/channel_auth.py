# chatrooms/services/channel_auth.py

from __future__ import annotations

import logging
import re
from typing import Optional

from sqlalchemy.orm import Session

from chatrooms.core.config import settings
from chatrooms.models.orm import User
from chatrooms.services.membership_service import MembershipService

logger = logging.getLogger(__name__)

CHANNEL_RE = re.compile(r"^chatroom\.(\d+)$")


def parse_channel(channel: str) -> Optional[int]:
    """Return the chatroom id of a "chatroom.<id>" channel, or None."""
    match = CHANNEL_RE.match(channel or "")
    return int(match.group(1)) if match else None


def authorize_channel(db: Session, user: Optional[User], channel: str) -> bool:
    """
    Decide whether ``user`` may listen on ``channel``.

    Any authenticated user may subscribe to any chatroom channel. Membership
    is checked only when REQUIRE_MEMBERSHIP_TO_SUBSCRIBE is on.
    """
    chatroom_id = parse_channel(channel)
    if chatroom_id is None or user is None:
        return False

    if settings.REQUIRE_MEMBERSHIP_TO_SUBSCRIBE:
        allowed = MembershipService(db).is_member(chatroom_id, user.id)
        if not allowed:
            logger.info("User %s refused on %s: not a member", user.id, channel)
        return allowed

    return True
