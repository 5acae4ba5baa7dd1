"""
Database models for the portfolio
"""
from uuid import uuid4

from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Text,
    ForeignKey,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from portfolio.database import Base


def _new_id() -> str:
    return uuid4().hex


class Photo(Base):
    """Photo metadata; the bytes live in Nextcloud"""
    __tablename__ = "photos"

    id = Column(String(32), primary_key=True, default=_new_id)
    # /api/photos/{filename} or legacy /photos/{filename}
    src = Column(String(1000), nullable=False, unique=True, index=True)
    title = Column(String(500), nullable=False)
    alt = Column(String(1000), nullable=False)
    width = Column(Integer, nullable=False, default=1600)
    height = Column(Integer, nullable=False, default=1067)
    year = Column(String(20))
    location = Column(String(500))
    camera = Column(String(500))
    description = Column(Text)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    likes = relationship("Like", back_populates="photo", cascade="all, delete-orphan")
    comments = relationship("Comment", back_populates="photo", cascade="all, delete-orphan")


class User(Base):
    """Account able to sign in to the admin panel"""
    __tablename__ = "users"

    id = Column(String(32), primary_key=True, default=_new_id)
    email = Column(String(320), nullable=False, unique=True, index=True)
    name = Column(String(200))
    password_hash = Column(String(200), nullable=False)
    role = Column(String(50), nullable=False, default="user")

    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Like(Base):
    """One like per photo and liker"""
    __tablename__ = "likes"
    __table_args__ = (
        UniqueConstraint("photo_id", "liker_key", name="uq_like_photo_liker"),
    )

    id = Column(Integer, primary_key=True, index=True)
    photo_id = Column(String(32), ForeignKey("photos.id", ondelete="CASCADE"), nullable=False, index=True)
    # user:{id} for signed-in callers, anon:{digest} otherwise
    liker_key = Column(String(128), nullable=False)
    user_id = Column(String(32), ForeignKey("users.id", ondelete="SET NULL"))

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    photo = relationship("Photo", back_populates="likes")


class Comment(Base):
    """Visitor comment on a photo"""
    __tablename__ = "comments"

    id = Column(Integer, primary_key=True, index=True)
    photo_id = Column(String(32), ForeignKey("photos.id", ondelete="CASCADE"), nullable=False, index=True)
    text = Column(Text, nullable=False)
    user_name = Column(String(200), nullable=False, default="Guest")
    user_id = Column(String(32), ForeignKey("users.id", ondelete="SET NULL"))

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    photo = relationship("Photo", back_populates="comments")
