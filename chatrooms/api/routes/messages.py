# chatrooms/api/routes/messages.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Header, Query, UploadFile, status
from sqlalchemy.orm import Session

from chatrooms.api.routes.utils import to_page
from chatrooms.core import state
from chatrooms.core.config import settings
from chatrooms.core.database import get_db
from chatrooms.core.errors import ChatError, InternalError
from chatrooms.core.security import get_current_user
from chatrooms.models.models import Message, Page, SendMessageRequest
from chatrooms.models.orm import User
from chatrooms.services.message_service import Attachment, MessageService

logger = logging.getLogger(__name__)

# ============================================================================
# MESSAGE ENDPOINTS
# ============================================================================

router = APIRouter(tags=["Message"])


def send_message_form(
    chatroom_id: int = Form(..., ge=1),
    message_text: Optional[str] = Form(None),
) -> SendMessageRequest:
    return SendMessageRequest(chatroom_id=chatroom_id, message_text=message_text)


@router.post("/messages", response_model=Message, status_code=status.HTTP_201_CREATED)
async def send_message(
    request: SendMessageRequest = Depends(send_message_form),
    attachment: Optional[UploadFile] = File(None),
    x_socket_id: Optional[str] = Header(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Send a message to a chatroom (multipart/form-data).

    Flow:
        1. Validate chatroom exists and the attachment is an image or video
        2. Store the attachment, if any, and keep its public URL
        3. Commit the message
        4. Publish MessageSent on chatroom.<id> to everyone but the sender

    The X-Socket-ID header names the sender's WebSocket so that exactly that
    connection is skipped; without it all of the sender's connections are.

    Raises:
        400 empty message / unsupported file type
        404 chatroom not found
        500 anything unexpected
    """
    upload = None
    if attachment is not None and attachment.filename:
        upload = Attachment(attachment.file, attachment.filename, attachment.content_type)

    service = MessageService(db, state.notifier)
    try:
        return await service.send(
            request.chatroom_id,
            current_user,
            text=request.message_text,
            attachment=upload,
            socket_id=x_socket_id,
        )
    except ChatError:
        raise
    except Exception as e:
        logger.exception("Error sending message")
        raise InternalError(details=None if settings.is_production else str(e))


@router.get("/chatrooms/{chatroom_id}/messages", response_model=Page[Message])
def list_messages(
    chatroom_id: int,
    page: int = Query(1, ge=1),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Messages of a chatroom, oldest first, one page at a time.

    Raises:
        404 if the chatroom doesn't exist
    """
    messages, total, last_page = MessageService(db, state.notifier).list_messages(chatroom_id, page=page)
    return to_page(messages, Message, page, settings.PAGE_SIZE, total, last_page)
