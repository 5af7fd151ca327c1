import logging
import uuid
from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session
from typing import Annotated

from .. import schemas, crud, models, auth
from ..database import get_db
from ..presence import PresenceChannel, get_presence

logger = logging.getLogger("auth")

router = APIRouter(tags=["Auth"])


@router.post("/auth/register", response_model=schemas.UserRead, status_code=status.HTTP_201_CREATED)
def register(user: schemas.UserCreate, db: Session = Depends(get_db)):
    if crud.get_user_by_username(db, user.username):
        raise HTTPException(status_code=400, detail="Username already exists")
    return crud.create_user(db, user=user, hashed_password=auth.hash_password(user.password))


@router.post("/auth/login", response_model=schemas.Token)
async def login(
        credentials: schemas.LoginRequest,
        db: Session = Depends(get_db),
        channel: PresenceChannel = Depends(get_presence),
):
    """
    Starts a new session. Every other session of the user is revoked and its
    live connections are told to log out.
    """
    # Hashing and queries stay off the event loop; only the broadcast runs on it
    user = await run_in_threadpool(crud.get_user_by_username, db, credentials.username)
    if user is None or not await run_in_threadpool(auth.verify_password, credentials.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    session_id = auth.new_session_id()
    user_id, username = user.id, user.username
    _, replaced = await run_in_threadpool(crud.create_session, db, user_id, session_id)
    if replaced:
        logger.info(f"User {username} logged in again; revoked {len(replaced)} earlier sessions.")
    else:
        logger.info(f"User {username} logged in.")

    await channel.bind_session(user_id, session_id, reason="new_login")

    return schemas.Token(access_token=auth.create_access_token(user_id, session_id), session_id=session_id)


@router.post("/auth/logout")
async def logout(
        current: Annotated[tuple[models.User, models.UserSession], Depends(auth.get_current_session)],
        db: Session = Depends(get_db),
        channel: PresenceChannel = Depends(get_presence),
):
    user, db_session = current
    username, session_id = user.username, db_session.id
    await run_in_threadpool(crud.revoke_session, db, session_id)
    # Presence state is only touched from the event loop
    channel.unbind_session(session_id)
    logger.info(f"User {username} logged out.")
    return {"detail": "Logged out"}


@router.get("/auth/me", response_model=schemas.UserRead)
def read_me(user: Annotated[models.User, Depends(auth.get_current_user)]):
    return user


@router.websocket("/ws")
async def presence_socket(
        websocket: WebSocket,
        token: str,
        db: Session = Depends(get_db),
        channel: PresenceChannel = Depends(get_presence),
):
    """
    Live channel for forced-logout notices. The client connects with its
    session token and receives {"type": "force_logout", ...} when the same
    user logs in elsewhere.
    """
    resolved = await run_in_threadpool(auth.authenticate_token, db, token)
    if resolved is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    user, db_session = resolved
    user_id, session_id = user.id, db_session.id
    # The socket can stay open for hours; don't hold a connection for it
    db.close()

    await websocket.accept()
    connection_id = uuid.uuid4().hex
    channel.ensure_bound(user_id, session_id)
    channel.subscribe(connection_id, session_id, websocket.send_json)
    logger.info(f"Connection {connection_id} subscribed for user {user_id}.")

    try:
        await websocket.send_json(schemas.Subscribed(session_id=session_id).model_dump())
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info(f"Connection {connection_id} disconnected.")
    finally:
        channel.unsubscribe(connection_id)
