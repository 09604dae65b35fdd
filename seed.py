# seed.py
import logging

from sqlalchemy.orm import Session

from movie_maze import models
from movie_maze.config import load_settings
from movie_maze.database import create_db_engine, create_session_factory, init_db
from movie_maze.security import hash_password
from movie_maze.voting import VoteLedger

logging.basicConfig(level=logging.INFO)

DEMO_PASSWORD = "password123"

USERS = [
    {"name": "Admin User", "email": "admin@example.com", "role": models.ROLE_ADMIN},
    {"name": "John Doe", "email": "john@example.com", "role": models.ROLE_USER},
    {"name": "Jane Smith", "email": "jane@example.com", "role": models.ROLE_USER},
]

MOVIES = [
    {
        "title": "Inception",
        "description": "A thief who steals corporate secrets through the use of dream-sharing technology "
                       "is given the inverse task of planting an idea into the mind of a C.E.O.",
        "genres": ["Action", "Sci-Fi"],
        "year": 2010,
        "author": "john@example.com",
    },
    {
        "title": "The Matrix",
        "description": "A computer hacker learns from mysterious rebels about the true nature of his reality "
                       "and his role in the war against its controllers.",
        "genres": ["Action", "Sci-Fi"],
        "year": 1999,
        "author": "jane@example.com",
    },
    {
        "title": "Spirited Away",
        "description": "A young girl wanders into a world ruled by gods, witches and spirits.",
        "genres": ["Animation", "Fantasy"],
        "year": 2001,
        "author": "jane@example.com",
    },
]

# (voter email, movie title, direction)
VOTES = [
    ("john@example.com", "The Matrix", "upvote"),
    ("jane@example.com", "The Matrix", "upvote"),
    ("admin@example.com", "Inception", "upvote"),
    ("jane@example.com", "Inception", "downvote"),
    ("john@example.com", "Spirited Away", "upvote"),
]

COMMENTS = [
    ("jane@example.com", "Inception", "The ending still gets me every time."),
    ("john@example.com", "The Matrix", "Red pill, obviously."),
]


def clear_data(db: Session):
    """Removes everything, children before parents."""
    logging.info("Clearing existing data...")
    for model in (models.Comment, models.Vote, models.Movie, models.User):
        db.query(model).delete(synchronize_session=False)
    db.commit()


def load_users(db: Session, salt_rounds: int) -> dict:
    logging.info("Loading users...")
    password_hash = hash_password(DEMO_PASSWORD, salt_rounds)
    users = {}
    for entry in USERS:
        user = models.User(name=entry["name"], email=entry["email"], password_hash=password_hash,
                           role=entry["role"])
        db.add(user)
        users[entry["email"]] = user
    db.commit()
    logging.info(f"Loaded {len(users)} users.")
    return users


def load_movies(db: Session, users: dict) -> dict:
    logging.info("Loading movies...")
    movies = {}
    for entry in MOVIES:
        movie = models.Movie(
            title=entry["title"],
            description=entry["description"],
            genres=entry["genres"],
            images=[],
            year=entry["year"],
            added_by=users[entry["author"]].user_id,
        )
        db.add(movie)
        movies[entry["title"]] = movie
    db.commit()
    logging.info(f"Loaded {len(movies)} movies.")
    return movies


def load_votes_and_comments(db: Session, users: dict, movies: dict):
    logging.info("Loading votes and comments...")
    ledger = VoteLedger(db)
    for email, title, direction in VOTES:
        ledger.cast_vote(users[email].user_id, movies[title].movie_id, direction)
    for email, title, body in COMMENTS:
        db.add(models.Comment(user_id=users[email].user_id, movie_id=movies[title].movie_id, body=body))
    db.commit()
    logging.info(f"Loaded {len(VOTES)} votes and {len(COMMENTS)} comments.")


def main():
    settings = load_settings()
    engine = create_db_engine(settings.database_url)
    logging.info("Initializing database...")
    init_db(engine)
    db = create_session_factory(engine)()
    try:
        clear_data(db)
        users = load_users(db, settings.salt_rounds)
        movies = load_movies(db, users)
        load_votes_and_comments(db, users, movies)
        logging.info("Database seeding complete.")
    except Exception as e:
        db.rollback()
        logging.error(f"An error occurred during seeding: {e}")
        raise
    finally:
        db.close()
        engine.dispose()
        logging.info("Database session closed.")


if __name__ == "__main__":
    main()
