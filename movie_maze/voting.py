# movie_maze/voting.py
"""Vote ledger: at most one vote per (user, movie), counts derived on demand.

A vote submission is a replacement, not a toggle: any existing vote for
the pair is deleted and, unless the direction is ``remove``, a fresh vote
is inserted. Casting the same direction twice therefore leaves exactly
one vote. Both steps run in one transaction; a concurrent submission for
the same pair that wins the race trips the ``uq_vote_user_movie``
constraint and is reported as ``DuplicateVoteError`` (never retried).
"""
import logging
from typing import Optional

from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from . import crud, models, schemas
from .errors import DuplicateVoteError, NotFoundError, ServerError, ValidationError

DIRECTIONS = {
    "upvote": models.UPVOTE,
    "downvote": models.DOWNVOTE,
    "remove": None,
}


class VoteLedger:

    def __init__(self, db: Session):
        self.db = db

    def get_vote(self, user_id: int, movie_id: int) -> Optional[int]:
        """Returns 1, -1, or None when the user has not voted."""
        vote = self.db.query(models.Vote.vote_type)\
                      .filter(models.Vote.user_id == user_id, models.Vote.movie_id == movie_id)\
                      .first()
        return vote.vote_type if vote else None

    def cast_vote(self, user_id: int, movie_id: int, direction: str) -> schemas.VoteCounts:
        if direction not in DIRECTIONS:
            raise ValidationError(f"Invalid vote type: {direction}")
        if crud.get_movie(self.db, movie_id) is None:
            raise NotFoundError("Movie not found")

        vote_type = DIRECTIONS[direction]
        try:
            self.db.query(models.Vote)\
                   .filter(models.Vote.user_id == user_id, models.Vote.movie_id == movie_id)\
                   .delete(synchronize_session=False)
            if vote_type is not None:
                self.db.add(models.Vote(user_id=user_id, movie_id=movie_id, vote_type=vote_type))
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            # A foreign key failure means the movie went away mid-vote
            if crud.get_movie(self.db, movie_id) is None:
                logging.warning(f"Movie {movie_id} was deleted while user {user_id} was voting")
                raise NotFoundError("Movie not found")
            logging.warning(f"Concurrent vote detected for user {user_id} on movie {movie_id}")
            raise DuplicateVoteError()
        except SQLAlchemyError as e:
            self.db.rollback()
            logging.error(f"Error casting {direction} for user {user_id} on movie {movie_id}: {e}")
            raise ServerError("Failed to update vote") from e

        logging.info(f"User {user_id} cast '{direction}' on movie {movie_id}")
        return self.tally(movie_id)

    def tally(self, movie_id: int) -> schemas.VoteCounts:
        """Counts straight from the votes table; nothing is cached."""
        upvotes, downvotes = self.db.query(
            func.coalesce(func.sum(case((models.Vote.vote_type == models.UPVOTE, 1), else_=0)), 0),
            func.coalesce(func.sum(case((models.Vote.vote_type == models.DOWNVOTE, 1), else_=0)), 0),
        ).filter(models.Vote.movie_id == movie_id).one()
        upvotes, downvotes = int(upvotes), int(downvotes)
        return schemas.VoteCounts(upvotes=upvotes, downvotes=downvotes, score=upvotes - downvotes)
