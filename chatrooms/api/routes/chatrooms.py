# chatrooms/api/routes/chatrooms.py

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from chatrooms.api.routes.utils import to_page
from chatrooms.core.config import settings
from chatrooms.core.database import get_db
from chatrooms.core.security import get_current_user
from chatrooms.models.models import Chatroom, CreateChatroomRequest, Page, StatusMessage
from chatrooms.models.orm import User
from chatrooms.services.membership_service import MembershipService
from chatrooms.services.room_manager import RoomManager

router = APIRouter(tags=["Chatroom"])

# ============================================================================
# CHATROOM ENDPOINTS
# ============================================================================

@router.post("/chatrooms", response_model=Chatroom, status_code=status.HTTP_201_CREATED)
def create_chatroom(
    request: CreateChatroomRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Create a new chatroom.

    The creator is not joined automatically and gets no special role.

    Raises:
        400 if name is blank or longer than 255 chars, or max_members < 1
    """
    return RoomManager(db).create_room(name=request.name, max_members=request.max_members)


@router.get("/chatrooms", response_model=Page[Chatroom])
def list_chatrooms(
    page: int = Query(1, ge=1),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """List chatrooms, one page at a time."""
    rooms, total, last_page = RoomManager(db).list_rooms(page=page)
    return to_page(rooms, Chatroom, page, settings.PAGE_SIZE, total, last_page)


@router.post("/chatrooms/{chatroom_id}/join", response_model=StatusMessage)
def join_chatroom(
    chatroom_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Join a chatroom.

    Raises:
        404 if the chatroom doesn't exist
        403 if the chatroom is full
        400 if the user is already a member
    """
    MembershipService(db).join(chatroom_id, current_user)
    return {"message": "You have successfully joined the chatroom"}


@router.post("/chatrooms/{chatroom_id}/leave", response_model=StatusMessage)
def leave_chatroom(
    chatroom_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Leave a chatroom. Succeeds whether or not the user was a member."""
    MembershipService(db).leave(chatroom_id, current_user)
    return {"message": "Left successfully"}
