from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from src.crud import crud_user, crud_account
from src.models import user as user_models
from src.db.core import get_db, NotFoundError
from src.services.rebalancer import advisory_message

router = APIRouter(
    prefix="/users",
    tags=["users"],
)

@router.post("/", response_model=user_models.UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(user: user_models.UserCreate, db: Session = Depends(get_db)):
    """
    Register a new user.
    """
    try:
        return crud_user.create_db_user(db=db, user_data=user)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.post("/login", response_model=user_models.LoginResponse)
def login(user_login: user_models.UserLogin, db: Session = Depends(get_db)):
    """
    Check credentials. Token issuing lives outside this service; clients send
    the returned user id as the X-User-Id header.
    """
    user = crud_user.authenticate_user(db, email=user_login.email, password=user_login.password)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Incorrect email or password")
    return user_models.LoginResponse(user_id=user.db_id, username=user.username, message="Login successful")

@router.get("/{user_id}", response_model=user_models.UserProfile)
def read_user(user_id: int, db: Session = Depends(get_db)):
    """
    Profile with the user's account count and the matching bucket advice.
    """
    try:
        db_user = crud_user.require_user(db, user_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    account_count = crud_account.get_accounts_count(db, user_id)
    profile = user_models.UserResponse.model_validate(db_user)
    return user_models.UserProfile(
        **profile.model_dump(),
        account_count=account_count,
        advice=advisory_message(account_count)
    )
