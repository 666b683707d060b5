from sqlalchemy import Column, String
from sqlalchemy.orm import relationship
from models.db_session import SqlAlchemyBase


class Users(SqlAlchemyBase):
    __tablename__ = "users"

    id = Column(String, primary_key=True)
    email = Column(String, nullable=False, unique=True)
    name = Column(String, nullable=False)
    password = Column(String, nullable=False)

    # Looked up through Posts.creator_id, nothing is stored on the user row
    posts = relationship(
        "Posts",
        back_populates="creator",
        order_by="Posts.id",
        cascade="all, delete-orphan"
    )
