# movie_maze/scoring.py
"""Read-time scoring of movies against the vote table.

Counts are computed with one grouped subquery over ``votes`` outer-joined
to ``movies``; no aggregate is ever stored on the movie row.
"""
from typing import List, Optional, Tuple

from sqlalchemy import case, desc, func
from sqlalchemy.orm import Query, Session, joinedload
from sqlalchemy.sql.expression import ColumnElement

from . import models, schemas
from .errors import NotFoundError


class ScoringAggregator:

    def __init__(self, db: Session):
        self.db = db

    def _scored_query(self) -> Tuple[Query, ColumnElement]:
        tally = self.db.query(
            models.Vote.movie_id.label("movie_id"),
            func.sum(case((models.Vote.vote_type == models.UPVOTE, 1), else_=0)).label("upvotes"),
            func.sum(case((models.Vote.vote_type == models.DOWNVOTE, 1), else_=0)).label("downvotes"),
        ).group_by(models.Vote.movie_id).subquery()

        upvotes = func.coalesce(tally.c.upvotes, 0)
        downvotes = func.coalesce(tally.c.downvotes, 0)
        score = upvotes - downvotes
        query = self.db.query(
                    models.Movie,
                    upvotes.label("upvotes"),
                    downvotes.label("downvotes"),
                    score.label("score"),
                )\
                .outerjoin(tally, tally.c.movie_id == models.Movie.movie_id)\
                .options(joinedload(models.Movie.author))
        return query, score

    @staticmethod
    def _counts(row) -> dict:
        upvotes, downvotes = int(row.upvotes), int(row.downvotes)
        return {"upvotes": upvotes, "downvotes": downvotes, "score": upvotes - downvotes}

    @staticmethod
    def _movie_fields(movie: models.Movie) -> dict:
        return schemas.Movie.model_validate(movie).model_dump()

    def score_one(self, movie_id: int) -> schemas.ScoredMovieDetail:
        query, _ = self._scored_query()
        row = query.filter(models.Movie.movie_id == movie_id).first()
        # The detail view requires an author, same as an inner join on users
        if row is None or row.Movie.author is None:
            raise NotFoundError("Movie not found")
        return schemas.ScoredMovieDetail(
            **self._movie_fields(row.Movie),
            **self._counts(row),
            author=schemas.AuthorSummary.model_validate(row.Movie.author),
        )

    def score_many(self, author_id: Optional[int] = None, title: Optional[str] = None,
                   limit: Optional[int] = None) -> List[schemas.ScoredMovie]:
        """All matching movies by score, newest first on ties, then by id."""
        query, score = self._scored_query()
        if author_id is not None:
            query = query.filter(models.Movie.added_by == author_id)
        if title and title.strip():
            query = query.filter(
                func.lower(models.Movie.title).contains(title.strip().lower(), autoescape=True)
            )
        query = query.order_by(desc(score), desc(models.Movie.created_at), desc(models.Movie.movie_id))
        if limit is not None:
            query = query.limit(limit)

        return [
            schemas.ScoredMovie(
                **self._movie_fields(row.Movie),
                **self._counts(row),
                author=schemas.User.model_validate(row.Movie.author) if row.Movie.author else None,
            )
            for row in query.all()
        ]
