# movie_maze/database.py
import logging
from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

Base = declarative_base()


def create_db_engine(database_url: str) -> Engine:
    """Creates the engine for the configured store.

    SQLite needs ``check_same_thread`` off because FastAPI runs sync
    endpoints in a threadpool.
    """
    if not database_url:
        logging.error("DATABASE_URL is empty.")
        raise ValueError("DATABASE_URL is not set. Please check your .env file.")

    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    elif "pymysql" not in database_url and database_url.startswith("mysql"):
        logging.warning(f"MySQL DATABASE_URL does not use the 'pymysql' driver: {database_url}")

    return create_engine(database_url, connect_args=connect_args, pool_pre_ping=True)


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Engine) -> None:
    # Register the models on Base before creating tables
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logging.info("Database tables ensured.")


def get_db(request: Request) -> Iterator[Session]:
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
