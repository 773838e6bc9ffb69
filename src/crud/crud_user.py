from sqlalchemy import or_
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from typing import Optional
from uuid import uuid4
import bcrypt

from src.db.core import UserDB, UserStatus, NotFoundError
from src.models.user import UserCreate
from src.logging_config import get_logger

logger = get_logger(__name__)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(plain_password.encode('utf-8'), hashed_password.encode('utf-8'))


def create_db_user(db: Session, user_data: UserCreate) -> UserDB:
    """Register a user. Email and username must both be unused."""

    taken = db.query(UserDB).filter(
        or_(UserDB.email == user_data.email, UserDB.username == user_data.username)
    ).first()
    if taken:
        field = "Email" if taken.email == user_data.email else "Username"
        raise ValueError(f"{field} already registered")

    db_user = UserDB(
        id=uuid4(),
        full_name=user_data.full_name,
        email=user_data.email,
        username=user_data.username,
        password_hash=hash_password(user_data.password),
        status=UserStatus(user_data.status.value) if user_data.status else None
    )

    try:
        db.add(db_user)
        db.commit()
        db.refresh(db_user)
    except IntegrityError:
        db.rollback()
        raise ValueError("User creation failed due to database constraint")

    logger.info(f"Registered user {db_user.db_id} ({db_user.username})")
    return db_user


def read_db_user(db: Session, user_id: int) -> Optional[UserDB]:
    return db.query(UserDB).filter(UserDB.db_id == user_id).first()


def require_user(db: Session, user_id: int) -> UserDB:
    """Every bucket operation starts here: the requesting user must exist"""
    user = read_db_user(db, user_id)
    if not user:
        raise NotFoundError(f"User with id {user_id} not found")
    return user


def authenticate_user(db: Session, email: str, password: str) -> Optional[UserDB]:
    user = db.query(UserDB).filter(UserDB.email == email.lower()).first()
    if not user or not verify_password(password, user.password_hash):
        return None
    return user
