"""Post lifecycle endpoints: list, create, get, update and delete posts."""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from BaseModel.PostBase import PostBase
from BaseModel.ResponsePostBase import PostRead, PostWithCreator
from BaseModel.ResponseUserBase import CreatorSummary
from config import Settings, get_settings
from dependencies import get_db, get_image_storage, get_notification_sink
from errors import (
    ForbiddenError,
    InternalError,
    MissingImageError,
    NotAuthenticatedError,
    NotFoundError,
    ValidationFailedError,
    validation_details,
)
from models.Posts import Posts
from models.Users import Users
from notifications import POSTS_EVENT, NotificationSink
from security import require_user
from storage import ExistingImage, ImageInput, ImageStorage, UploadedImage, image_input

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/posts", tags=["posts"])


@dataclass
class PostSubmission:
    title: Optional[str]
    content: Optional[str]
    image: Optional[ImageInput]


async def read_submission(request: Request) -> PostSubmission:
    """Reads title, content and image from multipart/urlencoded form data or a JSON body."""
    if request.headers.get("content-type", "").startswith("application/json"):
        try:
            fields = await request.json()
        except ValueError:
            raise ValidationFailedError("Request body is not valid JSON.") from None
        if not isinstance(fields, dict):
            raise ValidationFailedError("Request body must be a JSON object.")
    else:
        fields = await request.form()

    return PostSubmission(
        title=fields.get("title"),
        content=fields.get("content"),
        image=image_input(fields.get("image")),
    )


def validate_post_fields(submission: PostSubmission) -> PostBase:
    try:
        return PostBase(title=submission.title, content=submission.content)
    except ValidationError as exc:
        raise ValidationFailedError(data=validation_details(exc.errors())) from None


def check_upload(storage: ImageStorage, image: UploadedImage):
    if not storage.accepts(image.file):
        raise MissingImageError("Attached file must be a png, jpg or jpeg image.")


def load_post(db_sess: Session, post_id: str) -> Posts:
    try:
        key = int(post_id)
    except ValueError:
        raise NotFoundError() from None

    try:
        post = db_sess.get(Posts, key)
    except SQLAlchemyError as exc:
        raise InternalError() from exc

    if post is None:
        raise NotFoundError()
    return post


def commit(db_sess: Session):
    try:
        db_sess.commit()
    except SQLAlchemyError as exc:
        db_sess.rollback()
        raise InternalError() from exc


@router.get("")
def get_posts(
        page: int = Query(1, ge=1),
        db_sess: Session = Depends(get_db),
        settings: Settings = Depends(get_settings),
):
    per_page = settings.posts_per_page
    offset = (page - 1) * per_page

    try:
        total_items = db_sess.query(Posts).count()
        # pages past the end never reach the driver, huge offsets overflow it
        posts = []
        if offset < total_items:
            posts = (
                db_sess.query(Posts)
                .options(joinedload(Posts.creator))
                .order_by(Posts.id)
                .offset(offset)
                .limit(per_page)
                .all()
            )
    except SQLAlchemyError as exc:
        raise InternalError() from exc

    return {
        "message": "Posts fetched successfully",
        "posts": [PostWithCreator.model_validate(post).to_json() for post in posts],
        "totalItems": total_items,
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_post(
        submission: PostSubmission = Depends(read_submission),
        user_id: str = Depends(require_user),
        db_sess: Session = Depends(get_db),
        storage: ImageStorage = Depends(get_image_storage),
        notifications: NotificationSink = Depends(get_notification_sink),
):
    fields = validate_post_fields(submission)
    image = submission.image
    if not isinstance(image, UploadedImage):
        raise MissingImageError()
    check_upload(storage, image)

    creator = db_sess.get(Users, user_id)
    if creator is None:
        raise NotAuthenticatedError("User for this token no longer exists.")

    image_url = storage.save(image.file)
    post = Posts(title=fields.title, content=fields.content, image_url=image_url)
    # the post row and the owner link are written in one transaction
    creator.posts.append(post)
    try:
        commit(db_sess)
    except InternalError:
        storage.delete(image_url)
        raise

    db_sess.refresh(post)
    logger.info("Post %s created by user %s", post.id, user_id)

    await notifications.publish(POSTS_EVENT, {
        "action": "create",
        "post": PostWithCreator.model_validate(post).to_json(),
    })

    return {
        "message": "Post was created successfully!",
        "post": PostRead.model_validate(post).to_json(),
        "creator": CreatorSummary.model_validate(creator).model_dump(),
    }


@router.get("/{post_id}")
def get_post(post_id: str, db_sess: Session = Depends(get_db)):
    post = load_post(db_sess, post_id)
    return {"message": "Post fetched successfully", "post": PostRead.model_validate(post).to_json()}


@router.put("/{post_id}")
async def update_post(
        post_id: str,
        submission: PostSubmission = Depends(read_submission),
        user_id: str = Depends(require_user),
        db_sess: Session = Depends(get_db),
        storage: ImageStorage = Depends(get_image_storage),
        notifications: NotificationSink = Depends(get_notification_sink),
):
    fields = validate_post_fields(submission)
    image = submission.image
    if image is None:
        raise MissingImageError("No file picked.")
    if isinstance(image, UploadedImage):
        check_upload(storage, image)
    else:
        locator = storage.canonical(image.locator)
        if locator is None:
            raise ValidationFailedError(data=[{"field": "image", "message": "Unknown image locator."}])
        image = ExistingImage(locator)

    post = load_post(db_sess, post_id)
    if post.creator_id != user_id:
        raise ForbiddenError()

    # a text locator may only keep the post's own image, never adopt another one
    if isinstance(image, ExistingImage) and image.locator != storage.canonical(post.image_url):
        raise ValidationFailedError(data=[{"field": "image", "message": "Image does not belong to this post."}])

    uploaded = isinstance(image, UploadedImage)
    image_url = storage.save(image.file) if uploaded else image.locator
    old_image_url = post.image_url

    post.title = fields.title
    post.content = fields.content
    post.image_url = image_url
    try:
        commit(db_sess)
    except InternalError:
        if uploaded:
            storage.delete(image_url)
        raise

    if storage.canonical(old_image_url) != image_url:
        storage.delete(old_image_url)

    db_sess.refresh(post)
    logger.info("Post %s updated by user %s", post.id, user_id)

    await notifications.publish(POSTS_EVENT, {
        "action": "update",
        "post": PostWithCreator.model_validate(post).to_json(),
    })

    return {"message": "Post updated!", "post": PostRead.model_validate(post).to_json()}


@router.delete("/{post_id}")
async def delete_post(
        post_id: str,
        user_id: str = Depends(require_user),
        db_sess: Session = Depends(get_db),
        storage: ImageStorage = Depends(get_image_storage),
        notifications: NotificationSink = Depends(get_notification_sink),
):
    post = load_post(db_sess, post_id)
    if post.creator_id != user_id:
        raise ForbiddenError()

    deleted_id = post.id
    image_url = post.image_url

    # removing the row also removes it from the owner's posts
    db_sess.delete(post)
    commit(db_sess)

    storage.delete(image_url)
    logger.info("Post %s deleted by user %s", deleted_id, user_id)

    await notifications.publish(POSTS_EVENT, {"action": "delete", "post": deleted_id})

    return {"message": "Post deleted successfully!"}
