# chatrooms/services/membership_service.py

from __future__ import annotations

import logging

from sqlalchemy import DateTime, Integer, func, insert, literal, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from chatrooms.core.errors import AlreadyMember, CapacityExceeded, NotFound
from chatrooms.models.orm import Chatroom, ChatroomUser, User, utcnow
from chatrooms.services.room_manager import RoomManager

logger = logging.getLogger(__name__)


class MembershipService:
    """
    Join/leave rules for chatrooms.

    The seat is taken by a single conditional INSERT ... SELECT that only
    inserts while the chatroom's member count is below max_members, so two
    concurrent joins cannot both take the last seat. SQLite holds its write
    lock for the whole statement. Databases with row locks also lock the
    chatroom row (SELECT ... FOR UPDATE) first. A concurrent duplicate join
    trips the chatroom_user primary key and is reported as AlreadyMember.
    """

    def __init__(self, db: Session):
        self.db = db
        self.rooms = RoomManager(db)

    def _lock_room(self, room_id: int) -> Chatroom:
        room = self.db.scalars(
            select(Chatroom).where(Chatroom.id == room_id).with_for_update()
        ).first()
        if room is None:
            self.db.rollback()
            raise NotFound()
        return room

    def is_member(self, room_id: int, user_id: int) -> bool:
        return self.db.get(ChatroomUser, (room_id, user_id)) is not None

    def _take_seat(self, room_id: int, user_id: int) -> bool:
        seats_taken = (
            select(func.count())
            .select_from(ChatroomUser)
            .where(ChatroomUser.chatroom_id == room_id)
            .scalar_subquery()
        )
        stmt = insert(ChatroomUser.__table__).from_select(
            ["chatroom_id", "user_id", "created_at"],
            select(Chatroom.id, literal(user_id, Integer), literal(utcnow(), DateTime)).where(
                Chatroom.id == room_id,
                seats_taken < Chatroom.max_members,
            ),
        )
        return self.db.execute(stmt).rowcount == 1

    def join(self, room_id: int, user: User) -> None:
        """
        Add ``user`` to the chatroom.

        Raises:
            NotFound: chatroom does not exist
            CapacityExceeded: member count already at max_members
            AlreadyMember: user is already in the chatroom
        """
        room = self._lock_room(room_id)

        count = self.rooms.member_count(room.id)
        if count >= room.max_members:
            self.db.rollback()
            logger.info("Join refused: chatroom %s is full (%d/%d)", room.id, count, room.max_members)
            raise CapacityExceeded()

        if self.is_member(room.id, user.id):
            self.db.rollback()
            raise AlreadyMember()

        try:
            seated = self._take_seat(room.id, user.id)
        except IntegrityError:
            self.db.rollback()
            raise AlreadyMember()

        if not seated:
            # Another join took the last seat after the count above
            self.db.rollback()
            logger.info("Join refused: chatroom %s filled up concurrently", room.id)
            raise CapacityExceeded()

        self.db.commit()
        logger.info("→ User %s joined chatroom %s (%d/%d)", user.id, room.id, count + 1, room.max_members)

    def leave(self, room_id: int, user: User) -> None:
        """Remove ``user`` from the chatroom. Leaving without being a member is not an error."""
        room = self.rooms.get_room_or_404(room_id)

        membership = self.db.get(ChatroomUser, (room.id, user.id))
        if membership is not None:
            self.db.delete(membership)
            self.db.commit()
            logger.info("← User %s left chatroom %s", user.id, room.id)
