import logging
from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session
from typing import List, Annotated

from .. import schemas, crud, models, auth
from ..auth import get_current_admin_user
from ..database import get_db
from ..presence import PresenceChannel, get_presence

logger = logging.getLogger("auth")

router = APIRouter(prefix="/admin/users", tags=["Admin"])


@router.get("/", response_model=List[schemas.UserRead])
def read_users(
        admin: Annotated[models.User, Depends(get_current_admin_user)],
        db: Session = Depends(get_db),
        skip: int = 0,
        limit: int = 100,
):
    return crud.get_users(db, skip=skip, limit=limit)


@router.post("/", response_model=schemas.UserRead, status_code=status.HTTP_201_CREATED)
def create_user(
        user: schemas.AdminUserCreate,
        admin: Annotated[models.User, Depends(get_current_admin_user)],
        db: Session = Depends(get_db),
):
    if crud.get_user_by_username(db, user.username):
        raise HTTPException(status_code=400, detail="Username already exists")
    db_user = crud.create_user(db, user=user, hashed_password=auth.hash_password(user.password), role=user.role)
    logger.info(f"Admin {admin.username} created user {db_user.username} ({db_user.role.value}).")
    return db_user


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
        user_id: int,
        admin: Annotated[models.User, Depends(get_current_admin_user)],
        db: Session = Depends(get_db),
        channel: PresenceChannel = Depends(get_presence),
):
    """
    Remove a user with their sessions and bookings. Their live sockets stop
    receiving notices; their tokens fail on the next request.
    """
    admin_id, admin_name = admin.id, admin.username
    if user_id == admin_id:
        raise HTTPException(status_code=400, detail="Admins cannot delete themselves")

    session_ids = await run_in_threadpool(crud.delete_user, db, user_id)
    if session_ids is None:
        raise HTTPException(status_code=404, detail="User not found")

    for session_id in session_ids:
        channel.unbind_session(session_id)
    logger.info(f"Admin {admin_name} deleted user {user_id}.")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
