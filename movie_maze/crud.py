# movie_maze/crud.py
import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from . import models, schemas
from .errors import DuplicateEmailError, ServerError


# --- User CRUD ---
def get_user(db: Session, user_id: int) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.user_id == user_id).first()


def get_user_by_email(db: Session, email: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.email == email.strip().lower()).first()


def create_user(db: Session, name: str, email: str, password_hash: str,
                role: str = models.ROLE_USER) -> models.User:
    db_user = models.User(name=name, email=email.strip().lower(), password_hash=password_hash, role=role)
    db.add(db_user)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race with another signup for the same address
        db.rollback()
        raise DuplicateEmailError()
    except SQLAlchemyError as e:
        db.rollback()
        logging.error(f"Error creating user {email}: {e}")
        raise ServerError("Failed to create user") from e
    db.refresh(db_user)
    return db_user


# --- Movie CRUD ---
def get_movie(db: Session, movie_id: int) -> Optional[models.Movie]:
    return db.query(models.Movie).filter(models.Movie.movie_id == movie_id).first()


def create_movie(db: Session, author_id: int, movie: schemas.MovieCreate) -> models.Movie:
    db_movie = models.Movie(
        title=movie.title,
        description=movie.description,
        images=list(movie.images),
        genres=list(movie.genres),
        year=movie.year,
        added_by=author_id,
    )
    db.add(db_movie)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logging.error(f"Error creating movie '{movie.title}': {e}")
        raise ServerError("Failed to create movie") from e
    db.refresh(db_movie)
    return db_movie


# --- Comment CRUD ---
def get_comment(db: Session, comment_id: int) -> Optional[models.Comment]:
    return db.query(models.Comment).filter(models.Comment.comment_id == comment_id).first()


def get_movie_comments(db: Session, movie_id: int) -> List[models.Comment]:
    """Comments for a movie, oldest first, with their authors loaded."""
    return db.query(models.Comment)\
             .options(joinedload(models.Comment.user))\
             .filter(models.Comment.movie_id == movie_id)\
             .order_by(models.Comment.created_at, models.Comment.comment_id)\
             .all()


def create_comment(db: Session, user_id: int, comment: schemas.CommentCreate) -> models.Comment:
    db_comment = models.Comment(user_id=user_id, movie_id=comment.movie_id, body=comment.body)
    db.add(db_comment)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logging.error(f"Error creating comment on movie {comment.movie_id}: {e}")
        raise ServerError("Failed to create comment") from e
    db.refresh(db_comment)
    return db_comment


def delete_comment(db: Session, db_comment: models.Comment) -> None:
    db.delete(db_comment)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logging.error(f"Error deleting comment {db_comment.comment_id}: {e}")
        raise ServerError("Failed to delete comment") from e
