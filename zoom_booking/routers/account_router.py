from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List, Annotated

from .. import schemas, crud, models
from ..auth import get_current_user, get_current_admin_user
from ..database import get_db

router = APIRouter(prefix="/accounts", tags=["Zoom Accounts"])


@router.get("/", response_model=List[schemas.AccountRead])
def read_accounts(
        user: Annotated[models.User, Depends(get_current_user)],
        db: Session = Depends(get_db),
        skip: int = 0,
        limit: int = 100,
):
    return crud.get_accounts(db, skip=skip, limit=limit)


@router.get("/{account_id}", response_model=schemas.AccountCredentials)
def read_account(
        account_id: int,
        admin: Annotated[models.User, Depends(get_current_admin_user)],
        db: Session = Depends(get_db),
):
    db_account = crud.get_account(db, account_id=account_id)
    if db_account is None:
        raise HTTPException(status_code=404, detail="Zoom account not found")
    return db_account


@router.post("/", response_model=schemas.AccountCredentials, status_code=status.HTTP_201_CREATED)
def create_account(
        account: schemas.AccountCreate,
        admin: Annotated[models.User, Depends(get_current_admin_user)],
        db: Session = Depends(get_db),
):
    return crud.create_account(db, account=account)


@router.patch("/{account_id}", response_model=schemas.AccountCredentials)
def update_account(
        account_id: int,
        changes: schemas.AccountUpdate,
        admin: Annotated[models.User, Depends(get_current_admin_user)],
        db: Session = Depends(get_db),
):
    """
    Edit an account or toggle is_active. Deactivated accounts keep their
    bookings but are skipped by the allocator from now on.
    """
    db_account = crud.update_account(db, account_id=account_id, changes=changes)
    if db_account is None:
        raise HTTPException(status_code=404, detail="Zoom account not found")
    return db_account
