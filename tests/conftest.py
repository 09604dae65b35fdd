from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from movie_maze import models
from movie_maze.config import Settings
from movie_maze.database import create_db_engine, create_session_factory, init_db
from movie_maze.main import create_app
from movie_maze.security import create_access_token, hash_password

PASSWORD = "password123"
BASE_TIME = datetime(2024, 1, 1, 12, 0, 0)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'test.db'}",
        jwt_secret="test-secret",
        environment="test",
        upload_dir=str(tmp_path / "uploads"),
        base_url="http://testserver",
        salt_rounds=4,
        rate_limit_enabled=False,
    )


@pytest.fixture
def db_session(settings):
    engine = create_db_engine(settings.database_url)
    init_db(engine)
    session = create_session_factory(engine)()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def client(settings):
    app = create_app(settings)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_user(db_session):
    counter = {"n": 0}

    def _make_user(name=None, email=None, role=models.ROLE_USER):
        counter["n"] += 1
        user = models.User(
            name=name or f"User {counter['n']}",
            email=email or f"user{counter['n']}@example.com",
            password_hash=hash_password(PASSWORD, rounds=4),
            role=role,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_movie(db_session):
    counter = {"n": 0}

    def _make_movie(author, title=None, created_at=None, images=None, genres=None, year=None):
        counter["n"] += 1
        movie = models.Movie(
            title=title or f"Movie {counter['n']}",
            description="A film.",
            images=images or [],
            genres=genres or [],
            year=year,
            added_by=author.user_id,
            created_at=created_at or BASE_TIME + timedelta(minutes=counter["n"]),
        )
        db_session.add(movie)
        db_session.commit()
        db_session.refresh(movie)
        return movie

    return _make_movie


@pytest.fixture
def make_comment(db_session):
    def _make_comment(user, movie, body="Nice."):
        comment = models.Comment(user_id=user.user_id, movie_id=movie.movie_id, body=body)
        db_session.add(comment)
        db_session.commit()
        db_session.refresh(comment)
        return comment

    return _make_comment


@pytest.fixture
def auth_headers(settings):
    def _auth_headers(user):
        token = create_access_token(user.user_id, user.role, settings)
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers
