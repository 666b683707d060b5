import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from uuid import uuid4

import uvicorn
from fastapi import FastAPI, Depends, WebSocket, WebSocketDisconnect, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

import feed
from BaseModel.UserLoginBase import UserLogin
from BaseModel.UsersBase import UsersBase
from config import get_settings
from dependencies import get_db
from errors import InternalError, NotAuthenticatedError, ValidationFailedError, register_exception_handlers
from models import db_session
from models.Users import Users
from notifications import RedisNotificationSink, WebSocketBroadcaster, build_notification_sink
from security import auth_middleware, create_access_token, hash_password, verify_password
from storage import ImageStorage

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

db_session.global_init(settings.database_url)


def log_relay_exit(task: asyncio.Task):
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Redis notification relay stopped, subscribers get no more events", exc_info=exc)


@asynccontextmanager
async def lifespan(app: FastAPI):
    sink = app.state.notifications
    listener = None
    if isinstance(sink, RedisNotificationSink):
        listener = asyncio.create_task(sink.listen())
        listener.add_done_callback(log_relay_exit)
    logger.info("Feed API started")
    yield
    if listener:
        listener.cancel()
        # a relay that already failed was reported by log_relay_exit
        with suppress(asyncio.CancelledError, Exception):
            await listener
        await sink.close()
    logger.info("Feed API stopped")


app = FastAPI(title="Feed API", lifespan=lifespan)
app.middleware("http")(auth_middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)
register_exception_handlers(app)

storage = ImageStorage(settings.base_dir, settings.images_dir, settings.allowed_image_types)
storage.ensure_root()
app.state.storage = storage
app.mount(f"/{storage.images_dir}", StaticFiles(directory=storage.root), name="images")

app.state.broadcaster = WebSocketBroadcaster()
app.state.notifications = build_notification_sink(settings, app.state.broadcaster)

app.include_router(feed.router)


@app.put("/auth/signup", status_code=status.HTTP_201_CREATED)
def signup(user: UsersBase, db_sess: Session = Depends(get_db)):
    if db_sess.query(Users).filter(Users.email == user.email).first():
        raise ValidationFailedError(data=[{"field": "email", "message": "E-Mail address already exists!"}])

    new_user = Users(
        id=str(uuid4()),
        email=user.email,
        name=user.name,
        password=hash_password(user.password)
    )
    db_sess.add(new_user)
    try:
        db_sess.commit()
    except IntegrityError:
        db_sess.rollback()
        raise ValidationFailedError(data=[{"field": "email", "message": "E-Mail address already exists!"}])
    except SQLAlchemyError as exc:
        db_sess.rollback()
        raise InternalError() from exc

    logger.info("User %s signed up", new_user.id)
    return {"message": "User created!", "userId": new_user.id}


@app.post("/auth/login")
def login(user: UserLogin, db_sess: Session = Depends(get_db)):
    db_user = db_sess.query(Users).filter(Users.email == user.email).first()
    if not db_user or not verify_password(user.password, db_user.password):
        raise NotAuthenticatedError("Invalid email or password.")

    access_token = create_access_token(data={"sub": db_user.id})
    return {"token": access_token, "userId": db_user.id}


@app.get("/health")
def health():
    return {"status": "ok"}


@app.websocket("/ws")
async def posts_socket(websocket: WebSocket):
    broadcaster: WebSocketBroadcaster = websocket.app.state.broadcaster
    await broadcaster.connect(websocket)
    try:
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        broadcaster.disconnect(websocket)


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)
