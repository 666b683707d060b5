from fastapi import Request

from models import db_session
from notifications import NotificationSink
from storage import ImageStorage


def get_db():
    db = db_session.create_session()
    try:
        yield db
    finally:
        db.close()


def get_image_storage(request: Request) -> ImageStorage:
    return request.app.state.storage


def get_notification_sink(request: Request) -> NotificationSink:
    return request.app.state.notifications
