"""Durable storage for users, feeds, follows and posts."""

from .database import Database, FeedFollowView, FeedView, PostView
from .models import Feed, FeedFollow, Post, User

__all__ = [
    "Database",
    "FeedView",
    "FeedFollowView",
    "PostView",
    "Feed",
    "FeedFollow",
    "Post",
    "User",
]
