# chatrooms/api/routes/auth.py

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from chatrooms.core.database import get_db
from chatrooms.core.security import get_current_user
from chatrooms.models.models import LoginRequest, RegisterRequest, StatusMessage, TokenResponse, UserOut
from chatrooms.models.orm import User
from chatrooms.services import auth_service

router = APIRouter(tags=["Authentication"])


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def register(request: RegisterRequest, db: Session = Depends(get_db)):
    """Create an account and return a bearer token for it."""
    user, token = auth_service.register(db, request.name, request.email, request.password)
    return {"user": user, "access_token": token, "token_type": "Bearer"}


@router.post("/login", response_model=TokenResponse)
def login(request: LoginRequest, db: Session = Depends(get_db)):
    """Exchange email and password for a bearer token."""
    user, token = auth_service.login(db, request.email, request.password)
    return {"user": user, "access_token": token, "token_type": "Bearer"}


@router.post("/logout", response_model=StatusMessage)
def logout(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Revoke every token of the current user."""
    auth_service.logout(db, current_user)
    return {"message": "Logged out"}


@router.get("/user", response_model=UserOut)
def get_user_profile(current_user: User = Depends(get_current_user)):
    """Get current user profile."""
    return current_user
