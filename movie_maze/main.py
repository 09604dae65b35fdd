# movie_maze/main.py
import contextlib  # Used for async context manager for lifespan
import json
import logging
import time
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, File, Form, Query, Request, Response, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

# API Rate Limiting setup
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

# Import project modules
from . import catalog, crud, schemas, storage
from .config import Settings, load_settings
from .database import create_db_engine, create_session_factory, get_db, init_db
from .errors import (
    AppError, AuthError, DuplicateEmailError, ForbiddenError, NotFoundError, ServerError, ValidationError,
)
from .scoring import ScoringAggregator
from .security import (
    TOKEN_COOKIE, CurrentUser, create_access_token, get_current_user, hash_password, require_admin,
    verify_password,
)
from .voting import VoteLedger


def _error_body(message: str, error_type: str, error: Optional[str] = None) -> dict:
    return {"success": False, "message": message, "type": error_type, "error": error or message}


def _parse_genres(raw: Optional[str]) -> List[str]:
    """Accepts a JSON array string, falling back to a comma-separated list."""
    if raw is None or not raw.strip():
        return []
    try:
        parsed = json.loads(raw)
    except ValueError:
        return [g.strip() for g in raw.split(",") if g.strip()]
    if not isinstance(parsed, list) or not all(isinstance(g, str) for g in parsed):
        raise ValidationError("Genres must be a list of strings")
    return parsed


def _parse_year(raw: Optional[str]) -> Optional[int]:
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError("Year must be a whole number")


def _set_auth_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        TOKEN_COOKIE,
        token,
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
        max_age=settings.cookie_expires_in,
    )


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if isinstance(exc, ServerError) and not settings.is_development:
            body = _error_body("Server error", exc.error_code, "Internal server error")
        else:
            body = _error_body(exc.message, exc.error_code)
        return JSONResponse(status_code=exc.status_code, content=body)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        details = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()) if p != 'body')}: {err.get('msg')}"
            for err in exc.errors()
        )
        return JSONResponse(status_code=400, content=_error_body("Validation failed", "VALIDATION_ERROR", details))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        error_type = "NOT_FOUND" if exc.status_code == 404 else "HTTP_ERROR"
        return JSONResponse(status_code=exc.status_code, content=_error_body(str(exc.detail), error_type))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logging.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
        message = str(exc) if settings.is_development else "Something went wrong"
        return JSONResponse(status_code=500, content=_error_body(message, "SERVER_ERROR"))

    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    logging.basicConfig(level=settings.log_level)

    engine = create_db_engine(settings.database_url)
    session_factory = create_session_factory(engine)

    # --- Application Lifespan Management ---
    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI):
        # --- Startup ---
        logging.info(f"Application startup ({settings.environment})...")
        init_db(engine)
        logging.info("Application startup complete.")
        yield  # Application runs here
        # --- Shutdown ---
        logging.info("Application shutdown...")
        engine.dispose()
        logging.info("Application shutdown complete.")

    # --- FastAPI App Initialization ---
    limiter = Limiter(
        key_func=get_remote_address,
        default_limits=[settings.rate_limit_default],
        enabled=settings.rate_limit_enabled,
    )
    app = FastAPI(title="Movie Maze API", lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.limiter = limiter

    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.cors_origin],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        elapsed_ms = (time.time() - start_time) * 1000
        logging.info(f"{request.method} {request.url.path} {response.status_code} {elapsed_ms:.1f}ms")
        return response

    register_exception_handlers(app, settings)

    router = APIRouter()

    # --- Health ---
    @router.get("/health")
    @limiter.exempt
    def health(request: Request):
        return {"status": "OK"}

    # --- Auth ---
    @router.post("/auth/signup", response_model=schemas.AuthResponse, status_code=201)
    @limiter.limit(settings.rate_limit_auth)
    def signup(request: Request, response: Response, payload: schemas.SignupRequest,
               db: Session = Depends(get_db)):
        if crud.get_user_by_email(db, payload.email):
            raise DuplicateEmailError()
        user = crud.create_user(
            db,
            name=payload.name,
            email=payload.email,
            password_hash=hash_password(payload.password, settings.salt_rounds),
        )
        logging.info(f"Registered user {user.user_id}")
        token = create_access_token(user.user_id, user.role, settings)
        _set_auth_cookie(response, token, settings)
        return schemas.AuthResponse(user=schemas.User.model_validate(user), token=token)

    @router.post("/auth/login", response_model=schemas.AuthResponse)
    @limiter.limit(settings.rate_limit_auth)
    def login(request: Request, response: Response, payload: schemas.LoginRequest,
              db: Session = Depends(get_db)):
        user = crud.get_user_by_email(db, payload.email)
        if user is None or not verify_password(payload.password, user.password_hash):
            raise AuthError("Invalid credentials")
        token = create_access_token(user.user_id, user.role, settings)
        _set_auth_cookie(response, token, settings)
        return schemas.AuthResponse(user=schemas.User.model_validate(user), token=token)

    @router.post("/auth/logout", response_model=schemas.MessageResponse)
    @limiter.limit(settings.rate_limit_auth)
    def logout(request: Request, response: Response):
        response.delete_cookie(TOKEN_COOKIE)
        return schemas.MessageResponse(message="Logged out successfully")

    @router.get("/auth/me", response_model=schemas.User)
    def me(current_user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
        user = crud.get_user(db, current_user.user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    # --- Movies ---
    @router.get("/movies", response_model=schemas.MovieListResponse)
    def list_movies(
        author_id: Optional[int] = None,
        q: Optional[str] = None,
        limit: Optional[int] = Query(None, ge=1, le=100),
        db: Session = Depends(get_db),
    ):
        movies = ScoringAggregator(db).score_many(author_id=author_id, title=q, limit=limit)
        return schemas.MovieListResponse(data=movies)

    @router.get("/movies/{movie_id}", response_model=schemas.MovieDetailResponse)
    def get_movie(movie_id: int, db: Session = Depends(get_db)):
        return schemas.MovieDetailResponse(data=ScoringAggregator(db).score_one(movie_id))

    @router.post("/movies", response_model=schemas.MovieResponse, status_code=201)
    async def add_movie(
        title: Optional[str] = Form(None),
        description: Optional[str] = Form(None),
        genres: Optional[str] = Form(None),
        year: Optional[str] = Form(None),
        image: Optional[UploadFile] = File(None),
        current_user: CurrentUser = Depends(get_current_user),
        db: Session = Depends(get_db),
    ):
        if not title or not title.strip() or not description or not description.strip():
            raise ValidationError("Title and description required")
        try:
            movie_in = schemas.MovieCreate(
                title=title, description=description, genres=_parse_genres(genres), year=_parse_year(year),
            )
        except PydanticValidationError as e:
            raise ValidationError("; ".join(err["msg"] for err in e.errors()))

        image_url = None
        if image is not None and image.filename:
            image_url = await storage.save_image(image, settings)
        try:
            db_movie = await run_in_threadpool(
                catalog.add_movie, db, current_user.user_id, movie_in, image_url=image_url,
            )
        except ServerError:
            if image_url:
                storage.delete_images([image_url], settings)
            raise
        return schemas.MovieResponse(data=schemas.Movie.model_validate(db_movie))

    # --- Votes ---
    @router.get("/votes/{movie_id}", response_model=schemas.VoteStatus)
    def get_vote(movie_id: int, current_user: CurrentUser = Depends(get_current_user),
                 db: Session = Depends(get_db)):
        return schemas.VoteStatus(vote=VoteLedger(db).get_vote(current_user.user_id, movie_id))

    @router.post("/votes/{movie_id}", response_model=schemas.VoteResult)
    def cast_vote(movie_id: int, payload: schemas.VoteRequest,
                  current_user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
        counts = VoteLedger(db).cast_vote(current_user.user_id, movie_id, payload.vote_type)
        return schemas.VoteResult(**counts.model_dump())

    # --- Comments ---
    @router.post("/comments", response_model=schemas.CommentResponse, status_code=201)
    def add_comment(payload: schemas.CommentCreate, current_user: CurrentUser = Depends(get_current_user),
                    db: Session = Depends(get_db)):
        if crud.get_movie(db, payload.movie_id) is None:
            raise NotFoundError("Movie not found")
        comment = crud.create_comment(db, current_user.user_id, payload)
        return schemas.CommentResponse(data=schemas.Comment.model_validate(comment))

    @router.get("/comments/movie/{movie_id}", response_model=List[schemas.Comment])
    def list_comments(movie_id: int, db: Session = Depends(get_db)):
        return crud.get_movie_comments(db, movie_id)

    @router.delete("/comments/{comment_id}", response_model=schemas.MessageResponse)
    def delete_comment(comment_id: int, current_user: CurrentUser = Depends(get_current_user),
                       db: Session = Depends(get_db)):
        comment = crud.get_comment(db, comment_id)
        if comment is None:
            raise NotFoundError("Comment not found")
        if comment.user_id != current_user.user_id and not current_user.is_admin:
            raise ForbiddenError("Not authorized to delete this comment")
        crud.delete_comment(db, comment)
        logging.info(f"User {current_user.user_id} deleted comment {comment_id}")
        return schemas.MessageResponse(message="Comment deleted")

    # --- Admin ---
    @router.delete("/admin/movies/{movie_id}", response_model=schemas.MessageResponse)
    def admin_delete_movie(movie_id: int, admin: CurrentUser = Depends(require_admin),
                           db: Session = Depends(get_db)):
        images = catalog.delete_movie(db, movie_id)
        try:
            storage.delete_images(images, settings)
        except ServerError as e:
            # The rows are already gone; a leftover file is only logged
            logging.warning(f"Movie {movie_id} deleted but its images were not all removed: {e}")
        logging.info(f"Admin {admin.user_id} deleted movie {movie_id}")
        return schemas.MessageResponse(message="Movie deleted")

    @router.get("/admin/top-movies", response_model=schemas.TopMovieListResponse)
    def admin_top_movies(limit: int = Query(catalog.DEFAULT_TOP_LIMIT, ge=1, le=100),
                         admin: CurrentUser = Depends(require_admin), db: Session = Depends(get_db)):
        return schemas.TopMovieListResponse(data=catalog.top_movies(db, limit=limit))

    app.include_router(router, prefix=settings.api_prefix)

    storage.ensure_upload_dir(settings)
    app.mount(storage.URL_PREFIX, StaticFiles(directory=settings.upload_dir), name="uploads")
    return app


if __name__ == "__main__":
    import uvicorn
    app_settings = load_settings()
    uvicorn.run(create_app(app_settings), host="0.0.0.0", port=app_settings.port)
