import pytest
from sqlalchemy import event, insert
from sqlalchemy.exc import IntegrityError

from movie_maze import crud, models
from movie_maze.errors import DuplicateVoteError, NotFoundError, ValidationError
from movie_maze.voting import VoteLedger


def _votes_for(db_session, user, movie):
    return db_session.query(models.Vote)\
                     .filter(models.Vote.user_id == user.user_id, models.Vote.movie_id == movie.movie_id)\
                     .all()


def test_get_vote_is_none_without_a_vote(db_session, make_user, make_movie):
    user = make_user()
    movie = make_movie(user)
    assert VoteLedger(db_session).get_vote(user.user_id, movie.movie_id) is None


def test_upvote_twice_leaves_exactly_one_upvote(db_session, make_user, make_movie):
    user = make_user()
    movie = make_movie(user)
    ledger = VoteLedger(db_session)

    ledger.cast_vote(user.user_id, movie.movie_id, "upvote")
    counts = ledger.cast_vote(user.user_id, movie.movie_id, "upvote")

    votes = _votes_for(db_session, user, movie)
    assert len(votes) == 1
    assert votes[0].vote_type == models.UPVOTE
    assert (counts.upvotes, counts.downvotes, counts.score) == (1, 0, 1)
    assert ledger.get_vote(user.user_id, movie.movie_id) == 1


def test_switching_direction_replaces_the_vote(db_session, make_user, make_movie):
    user = make_user()
    movie = make_movie(user)
    ledger = VoteLedger(db_session)

    ledger.cast_vote(user.user_id, movie.movie_id, "upvote")
    counts = ledger.cast_vote(user.user_id, movie.movie_id, "downvote")

    assert len(_votes_for(db_session, user, movie)) == 1
    assert ledger.get_vote(user.user_id, movie.movie_id) == -1
    assert (counts.upvotes, counts.downvotes, counts.score) == (0, 1, -1)


def test_remove_clears_the_vote(db_session, make_user, make_movie):
    user = make_user()
    movie = make_movie(user)
    ledger = VoteLedger(db_session)

    ledger.cast_vote(user.user_id, movie.movie_id, "upvote")
    counts = ledger.cast_vote(user.user_id, movie.movie_id, "remove")

    assert _votes_for(db_session, user, movie) == []
    assert ledger.get_vote(user.user_id, movie.movie_id) is None
    assert counts.score == 0


def test_removing_a_missing_vote_is_not_an_error(db_session, make_user, make_movie):
    user = make_user()
    movie = make_movie(user)
    counts = VoteLedger(db_session).cast_vote(user.user_id, movie.movie_id, "remove")
    assert (counts.upvotes, counts.downvotes, counts.score) == (0, 0, 0)


def test_any_sequence_keeps_at_most_one_vote_per_pair(db_session, make_user, make_movie):
    user = make_user()
    movie = make_movie(user)
    ledger = VoteLedger(db_session)
    for direction in ["upvote", "downvote", "downvote", "remove", "remove", "upvote", "downvote", "upvote"]:
        ledger.cast_vote(user.user_id, movie.movie_id, direction)
        assert len(_votes_for(db_session, user, movie)) <= 1
    assert ledger.get_vote(user.user_id, movie.movie_id) == 1


def test_tally_counts_all_voters(db_session, make_user, make_movie):
    author = make_user()
    movie = make_movie(author)
    ledger = VoteLedger(db_session)
    for direction in ["upvote", "upvote", "downvote"]:
        ledger.cast_vote(make_user().user_id, movie.movie_id, direction)

    counts = ledger.tally(movie.movie_id)
    assert (counts.upvotes, counts.downvotes, counts.score) == (2, 1, 1)


def test_votes_on_other_movies_are_not_counted(db_session, make_user, make_movie):
    user = make_user()
    first, second = make_movie(user), make_movie(user)
    ledger = VoteLedger(db_session)
    ledger.cast_vote(user.user_id, first.movie_id, "upvote")

    counts = ledger.cast_vote(user.user_id, second.movie_id, "downvote")
    assert (counts.upvotes, counts.downvotes) == (0, 1)
    assert ledger.get_vote(user.user_id, first.movie_id) == 1


def test_unknown_direction_is_rejected(db_session, make_user, make_movie):
    user = make_user()
    movie = make_movie(user)
    with pytest.raises(ValidationError):
        VoteLedger(db_session).cast_vote(user.user_id, movie.movie_id, "sideways")


def test_voting_on_missing_movie_raises_not_found(db_session, make_user):
    user = make_user()
    with pytest.raises(NotFoundError):
        VoteLedger(db_session).cast_vote(user.user_id, 9999, "upvote")


def test_store_rejects_a_second_vote_for_the_same_pair(db_session, make_user, make_movie):
    user = make_user()
    movie = make_movie(user)
    db_session.add(models.Vote(user_id=user.user_id, movie_id=movie.movie_id, vote_type=1))
    db_session.commit()

    db_session.add(models.Vote(user_id=user.user_id, movie_id=movie.movie_id, vote_type=-1))
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()


def test_concurrent_insert_surfaces_as_duplicate_vote(db_session, make_user, make_movie):
    user = make_user()
    movie = make_movie(user)

    # Another request slips its vote in between our delete and our insert
    @event.listens_for(db_session, "before_flush", once=True)
    def racing_insert(session, flush_context, instances):
        session.connection().execute(
            insert(models.Vote).values(user_id=user.user_id, movie_id=movie.movie_id, vote_type=-1)
        )

    ledger = VoteLedger(db_session)
    with pytest.raises(DuplicateVoteError):
        ledger.cast_vote(user.user_id, movie.movie_id, "upvote")

    # Our transaction was rolled back as a whole
    assert _votes_for(db_session, user, movie) == []


def test_movie_deleted_mid_vote_raises_not_found(db_session, make_user, make_movie, monkeypatch):
    user = make_user()
    movie = make_movie(user)
    lookups = iter([movie, None])
    monkeypatch.setattr(crud, "get_movie", lambda db, movie_id: next(lookups))

    # The insert fails on the foreign key because the movie is already gone
    @event.listens_for(db_session, "before_flush", once=True)
    def movie_vanished(session, flush_context, instances):
        raise IntegrityError("INSERT INTO votes", {}, Exception("FOREIGN KEY constraint failed"))

    with pytest.raises(NotFoundError):
        VoteLedger(db_session).cast_vote(user.user_id, movie.movie_id, "upvote")
