from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from src.crud import crud_account
from src.models import account as account_models
from src.db.core import get_db

router = APIRouter(
    prefix="/banks",
    tags=["banks"],
)

@router.get("/", response_model=List[account_models.BankResponse])
def read_banks(db: Session = Depends(get_db)):
    """
    Retrieve the bank catalog.
    """
    return crud_account.read_db_banks(db)
