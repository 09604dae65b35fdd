# movie_maze/catalog.py
import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import crud, models, schemas
from .errors import NotFoundError, ServerError
from .scoring import ScoringAggregator

DEFAULT_TOP_LIMIT = 10


def add_movie(db: Session, author_id: int, movie: schemas.MovieCreate,
              image_url: Optional[str] = None) -> models.Movie:
    """Persists a validated movie; a new movie starts with no votes."""
    if image_url:
        movie = movie.model_copy(update={"images": [*movie.images, image_url]})
    db_movie = crud.create_movie(db, author_id=author_id, movie=movie)
    logging.info(f"User {author_id} added movie {db_movie.movie_id} '{db_movie.title}'")
    return db_movie


def delete_movie(db: Session, movie_id: int) -> List[str]:
    """Deletes a movie with its votes and comments in one transaction.

    Order is votes, comments, movie so the foreign keys never dangle even
    on stores that enforce them eagerly. Returns the movie's image URLs so
    the caller can clean up stored files once the delete has committed.
    """
    db_movie = crud.get_movie(db, movie_id)
    if db_movie is None:
        raise NotFoundError("Movie not found")
    images = list(db_movie.images or [])

    try:
        votes_deleted = db.query(models.Vote)\
                          .filter(models.Vote.movie_id == movie_id)\
                          .delete(synchronize_session=False)
        comments_deleted = db.query(models.Comment)\
                             .filter(models.Comment.movie_id == movie_id)\
                             .delete(synchronize_session=False)
        db.delete(db_movie)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logging.error(f"Error deleting movie {movie_id}: {e}")
        raise ServerError("Failed to delete movie") from e

    logging.info(f"Deleted movie {movie_id} with {votes_deleted} votes and {comments_deleted} comments")
    return images


def top_movies(db: Session, limit: int = DEFAULT_TOP_LIMIT) -> List[schemas.TopMovie]:
    """Leaderboard: same ordering as the full listing, truncated to ``limit``."""
    scored = ScoringAggregator(db).score_many(limit=limit)
    return [
        schemas.TopMovie(
            movie_id=movie.movie_id,
            title=movie.title,
            description=movie.description,
            images=movie.images,
            genres=movie.genres,
            upvotes=movie.upvotes,
            downvotes=movie.downvotes,
            score=movie.score,
            author=schemas.AuthorContact(
                user_id=movie.author.user_id, name=movie.author.name, email=movie.author.email,
            ) if movie.author else None,
        )
        for movie in scored
    ]
