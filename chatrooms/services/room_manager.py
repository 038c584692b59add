# chatrooms/services/room_manager.py

from __future__ import annotations

import logging
import math
from typing import Optional, Tuple, List

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from chatrooms.core.config import settings
from chatrooms.core.errors import NotFound
from chatrooms.models.orm import Chatroom, ChatroomUser

logger = logging.getLogger(__name__)


def paginate(db: Session, stmt, page: int, per_page: int) -> Tuple[List, int, int]:
    """
    Run ``stmt`` for one page.

    Returns:
        (items, total, last_page); ``last_page`` is at least 1 so an empty
        listing still reports a valid first page.
    """
    total = db.scalar(select(func.count()).select_from(stmt.order_by(None).subquery()))
    items = db.scalars(stmt.offset((page - 1) * per_page).limit(per_page)).all()
    last_page = max(1, math.ceil(total / per_page))
    return list(items), total, last_page


# ============================================================================
# CHATROOM REGISTRY
# ============================================================================
class RoomManager:
    """
    CRUD operations for chatrooms, backed by the request's SQLAlchemy session.

    Membership rules live in MembershipService; this class only creates,
    lists and looks up chatrooms.

    Usage:
        rooms = RoomManager(db)
        room = rooms.create_room("General Chat", max_members=50)
        page = rooms.list_rooms(page=1)
    """

    def __init__(self, db: Session):
        self.db = db

    def create_room(self, name: str, max_members: int) -> Chatroom:
        """
        Create a new chatroom and commit it.

        Args:
            name: Chatroom name (already validated)
            max_members: Capacity, a positive integer

        Returns:
            Chatroom: The newly created row
        """
        room = Chatroom(name=name, max_members=max_members)
        self.db.add(room)
        self.db.commit()
        logger.info("✓ Created chatroom %s: %s (max %d)", room.id, room.name, room.max_members)
        return room

    def get_room(self, room_id: int) -> Optional[Chatroom]:
        return self.db.get(Chatroom, room_id)

    def get_room_or_404(self, room_id: int) -> Chatroom:
        room = self.get_room(room_id)
        if room is None:
            raise NotFound()
        return room

    def list_rooms(self, page: int = 1, per_page: Optional[int] = None):
        """
        One page of chatrooms ordered by id.

        Returns:
            (rooms, total, last_page)
        """
        per_page = per_page or settings.PAGE_SIZE
        stmt = select(Chatroom).order_by(Chatroom.id)
        return paginate(self.db, stmt, page, per_page)

    def member_count(self, room_id: int) -> int:
        return self.db.scalar(
            select(func.count()).select_from(ChatroomUser).where(ChatroomUser.chatroom_id == room_id)
        )
