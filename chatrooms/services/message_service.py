# chatrooms/services/message_service.py

from __future__ import annotations

import logging
from typing import BinaryIO, Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import select
from sqlalchemy.orm import Session

from chatrooms.core.config import settings
from chatrooms.core.errors import EmptyMessage, NotMember
from chatrooms.models.orm import Message, User
from chatrooms.services.attachment_store import AttachmentStore
from chatrooms.services.membership_service import MembershipService
from chatrooms.services.notifier import Notifier
from chatrooms.services.room_manager import RoomManager, paginate

logger = logging.getLogger(__name__)


class Attachment:
    """An uploaded file as the message service sees it."""

    def __init__(self, stream: BinaryIO, filename: str, content_type: Optional[str]):
        self.stream = stream
        self.filename = filename
        self.content_type = content_type


class MessageService:
    """
    Validates, stores and announces chatroom messages.

    send() is a two-step contract: the message row is committed first, then
    the notifier is asked to fan it out. The fan-out step never undoes or
    fails the first.
    """

    def __init__(self, db: Session, notifier: Notifier, attachments: Optional[AttachmentStore] = None):
        self.db = db
        self.notifier = notifier
        self.attachments = attachments or AttachmentStore()
        self.rooms = RoomManager(db)

    async def send(
        self,
        chatroom_id: int,
        sender: User,
        text: Optional[str] = None,
        attachment: Optional[Attachment] = None,
        socket_id: Optional[str] = None,
    ) -> Message:
        """
        Store a message, then publish it to the chatroom channel.

        The database and disk work of create() runs in the threadpool so a slow
        commit or a large upload never blocks the event loop.
        """
        message = await run_in_threadpool(self.create, chatroom_id, sender, text, attachment)
        await self.notifier.publish_message(message, sender, socket_id=socket_id)
        return message

    def create(
        self,
        chatroom_id: int,
        sender: User,
        text: Optional[str] = None,
        attachment: Optional[Attachment] = None,
    ) -> Message:
        """
        Validate and commit a message without announcing it.

        Args:
            chatroom_id: Target chatroom
            sender: Authenticated author
            text: Optional message text
            attachment: Optional image or video upload

        Returns:
            Message: The committed row

        Raises:
            NotFound: chatroom does not exist
            NotMember: sender is not a member and REQUIRE_MEMBERSHIP_TO_SEND is on
            UnsupportedMediaType: attachment is neither image nor video
            EmptyMessage: no text and no attachment
        """
        logger.info("Starting message send process (chatroom=%s, user=%s)", chatroom_id, sender.id)
        if text is not None:
            # Whitespace-only text counts as no text
            text = text.strip() or None

        room = self.rooms.get_room_or_404(chatroom_id)

        if settings.REQUIRE_MEMBERSHIP_TO_SEND and not MembershipService(self.db).is_member(room.id, sender.id):
            raise NotMember()

        if attachment is not None:
            # Refuse the type before touching the disk
            self.attachments.ensure_supported(attachment.content_type, attachment.filename)

        if not text and attachment is None:
            logger.error("No message text or attachment provided")
            raise EmptyMessage()

        attachment_url = None
        if attachment is not None:
            attachment_url = self.attachments.store(attachment.stream, attachment.filename, attachment.content_type)

        message = Message(
            chatroom_id=room.id,
            user_id=sender.id,
            message_text=text,
            attachment_path=attachment_url,
        )
        self.db.add(message)
        self.db.commit()
        logger.info("Message created successfully (message_id=%s)", message.id)

        return message

    def list_messages(self, chatroom_id: int, page: int = 1, per_page: Optional[int] = None):
        """
        One page of a chatroom's messages, oldest first.

        Returns:
            (messages, total, last_page)
        """
        room = self.rooms.get_room_or_404(chatroom_id)
        per_page = per_page or settings.PAGE_SIZE
        stmt = (
            select(Message)
            .where(Message.chatroom_id == room.id)
            .order_by(Message.created_at, Message.id)
        )
        return paginate(self.db, stmt, page, per_page)
