"""
Relational schema: users, feeds, follows and posts.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.types import TypeDecorator

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class UTCDateTime(TypeDecorator):
    """Stores naive UTC, hands back aware UTC datetimes on every backend."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String, nullable=False, unique=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    feeds = relationship("Feed", back_populates="owner", cascade="all, delete-orphan")
    follows = relationship(
        "FeedFollow", back_populates="user", cascade="all, delete-orphan"
    )


class Feed(Base):
    __tablename__ = "feeds"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    url = Column(String, nullable=False, unique=True)
    user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Attempt time, set before the fetch starts
    last_fetched_at = Column(UTCDateTime, nullable=True, index=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    owner = relationship("User", back_populates="feeds")
    posts = relationship("Post", back_populates="feed", cascade="all, delete-orphan")
    follows = relationship(
        "FeedFollow", back_populates="feed", cascade="all, delete-orphan"
    )


class FeedFollow(Base):
    __tablename__ = "feed_follows"
    __table_args__ = (UniqueConstraint("user_id", "feed_id", name="uq_feed_follows_user_feed"),)

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    feed_id = Column(
        String(36), ForeignKey("feeds.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="follows")
    feed = relationship("Feed", back_populates="follows")


class Post(Base):
    __tablename__ = "posts"
    __table_args__ = (UniqueConstraint("feed_id", "url", name="uq_posts_feed_url"),)

    id = Column(String(36), primary_key=True, default=new_id)
    feed_id = Column(
        String(36), ForeignKey("feeds.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title = Column(String, nullable=False, default="")
    url = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    published_at = Column(UTCDateTime, nullable=False, index=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    feed = relationship("Feed", back_populates="posts")
