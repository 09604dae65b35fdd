# movie_maze/models.py
from datetime import datetime, timezone

from sqlalchemy import (
    JSON, Column, DateTime, ForeignKey, Integer, SmallInteger, String, Text, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .database import Base

ROLE_USER = "user"
ROLE_ADMIN = "admin"

UPVOTE = 1
DOWNVOTE = -1


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"
    user_id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)  # stored lower-cased
    password_hash = Column(String(255), nullable=False)
    role = Column(String(10), nullable=False, default=ROLE_USER)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    movies = relationship("Movie", back_populates="author")
    votes = relationship("Vote", back_populates="user")
    comments = relationship("Comment", back_populates="user")


class Movie(Base):
    __tablename__ = "movies"
    movie_id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), index=True, nullable=False)
    description = Column(Text, nullable=False)
    images = Column(JSON, nullable=False, default=list)  # list of image URLs
    genres = Column(JSON, nullable=False, default=list)
    year = Column(Integer, nullable=True)
    added_by = Column(Integer, ForeignKey("users.user_id"), index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True, nullable=False)

    author = relationship("User", back_populates="movies")
    votes = relationship("Vote", back_populates="movie")
    comments = relationship("Comment", back_populates="movie")


class Vote(Base):
    __tablename__ = "votes"
    # One vote per user per movie, enforced by the store itself
    __table_args__ = (UniqueConstraint("user_id", "movie_id", name="uq_vote_user_movie"),)

    vote_id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.user_id"), index=True, nullable=False)
    movie_id = Column(Integer, ForeignKey("movies.movie_id"), index=True, nullable=False)
    vote_type = Column(SmallInteger, nullable=False)  # 1 upvote, -1 downvote
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    user = relationship("User", back_populates="votes")
    movie = relationship("Movie", back_populates="votes")


class Comment(Base):
    __tablename__ = "comments"
    comment_id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.user_id"), index=True, nullable=False)
    movie_id = Column(Integer, ForeignKey("movies.movie_id"), index=True, nullable=False)
    body = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utcnow)

    user = relationship("User", back_populates="comments")
    movie = relationship("Movie", back_populates="comments")
