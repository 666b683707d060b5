import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from jose import JWTError, jwt
from passlib.context import CryptContext

from config import get_settings
from errors import NotAuthenticatedError

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


# хеширование и проверка пароля
def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    settings = get_settings()
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> str:
    """
    Декодирует JWT access токен и возвращает user_id.
    Выбрасывает JWTError, если токен некорректный или это не access токен.
    """
    settings = get_settings()
    payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    if payload.get("type") != "access":
        raise JWTError("Not an access token")
    user_id = payload.get("sub")
    if not user_id:
        raise JWTError("Token has no subject")
    return user_id


async def auth_middleware(request: Request, call_next):
    """
    Middleware для проверки access_token из headers (Authorization: Bearer <token>).
    Кладёт user_id в request.state.user, запросы без заголовка проходят анонимно.
    """
    auth_header = request.headers.get("Authorization")

    if not auth_header or not auth_header.startswith("Bearer "):
        request.state.user = None
        return await call_next(request)

    token = auth_header.split(" ", 1)[1]

    try:
        request.state.user = decode_access_token(token)
    except JWTError as exc:
        logger.info("Rejected access token on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=401, content={"message": "Invalid or expired access token."})

    return await call_next(request)


def require_user(request: Request) -> str:
    user_id = getattr(request.state, "user", None)
    if not user_id:
        raise NotAuthenticatedError()
    return user_id
