"""
User registration and token login.

Tokens are stateless HS256 JWTs. Logout bumps the user's token_version,
which revokes every token issued before it.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from chatrooms.core.errors import EmailTaken, InvalidCredentials
from chatrooms.core.logging import get_logger
from chatrooms.core.security import create_access_token, hash_password, verify_password
from chatrooms.models.orm import User

logger = get_logger(__name__)


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def register(db: Session, name: str, email: str, password: str) -> tuple[User, str]:
    """Create a user and return it with a fresh access token."""
    email = _normalize_email(email)
    if db.scalars(select(User).where(User.email == email)).first() is not None:
        raise EmailTaken()

    user = User(name=name, email=email, password_hash=hash_password(password))
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise EmailTaken()

    logger.info(f"User registered: {user.id}")
    return user, create_access_token(user)


def login(db: Session, email: str, password: str) -> tuple[User, str]:
    user = db.scalars(select(User).where(User.email == _normalize_email(email))).first()
    if user is None or not verify_password(password, user.password_hash):
        logger.info("Login failed")
        raise InvalidCredentials()

    logger.info(f"User authenticated: {user.id}")
    return user, create_access_token(user)


def logout(db: Session, user: User) -> None:
    """Revoke every token issued to ``user`` so far."""
    user.token_version = (user.token_version or 0) + 1
    db.commit()
    logger.info(f"User logged out: {user.id}")
