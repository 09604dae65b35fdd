# movie_maze/schemas.py
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

MIN_YEAR = 1900
FUTURE_YEARS_ALLOWED = 5


# --- User Schemas ---
class UserBase(BaseModel):
    name: str
    email: EmailStr


class SignupRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    # Passwords are kept verbatim so login compares the same string
    password: str = Field(..., min_length=8)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("email")
    @classmethod
    def normalise_email(cls, value: str) -> str:
        return value.lower()


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def normalise_email(cls, value: str) -> str:
        return value.strip().lower()


class User(UserBase):
    """Everything about a user except the password."""
    user_id: int
    role: str
    created_at: datetime

    class Config:
        from_attributes = True


class AuthorSummary(BaseModel):
    """Author as shown on a movie detail page: no contact details."""
    user_id: int
    name: str

    class Config:
        from_attributes = True


class AuthorContact(AuthorSummary):
    email: str


class AuthResponse(BaseModel):
    user: User
    token: str


# --- Movie Schemas ---
class MovieBase(BaseModel):
    title: str
    description: str
    images: List[str] = Field(default_factory=list)
    genres: List[str] = Field(default_factory=list)
    year: Optional[int] = None


class MovieCreate(MovieBase):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)

    class Config:
        str_strip_whitespace = True

    @field_validator("genres")
    @classmethod
    def drop_blank_genres(cls, value: List[str]) -> List[str]:
        return [genre for genre in value if genre]

    @field_validator("year")
    @classmethod
    def year_in_range(cls, value: Optional[int]) -> Optional[int]:
        if value is None:
            return value
        latest = datetime.now().year + FUTURE_YEARS_ALLOWED
        if value < MIN_YEAR:
            raise ValueError(f"Year must be {MIN_YEAR} or later")
        if value > latest:
            raise ValueError(f"Year cannot be later than {latest}")
        return value


class Movie(MovieBase):
    movie_id: int
    added_by: int
    created_at: datetime

    class Config:
        from_attributes = True


class VoteCounts(BaseModel):
    upvotes: int = 0
    downvotes: int = 0
    score: int = 0


class ScoredMovie(Movie, VoteCounts):
    """List view: the author is shown with everything but the password."""
    author: Optional[User] = None


class ScoredMovieDetail(Movie, VoteCounts):
    author: AuthorSummary


class TopMovie(VoteCounts):
    movie_id: int
    title: str
    description: str
    images: List[str] = Field(default_factory=list)
    genres: List[str] = Field(default_factory=list)
    author: Optional[AuthorContact] = None


class MovieResponse(BaseModel):
    success: bool = True
    data: Movie


class MovieDetailResponse(BaseModel):
    success: bool = True
    data: ScoredMovieDetail


class MovieListResponse(BaseModel):
    success: bool = True
    data: List[ScoredMovie]


class TopMovieListResponse(BaseModel):
    success: bool = True
    data: List[TopMovie]


# --- Vote Schemas ---
class VoteRequest(BaseModel):
    vote_type: Literal["upvote", "downvote", "remove"] = Field(..., alias="voteType")

    class Config:
        populate_by_name = True


class VoteStatus(BaseModel):
    vote: Optional[int] = None


class VoteResult(VoteCounts):
    success: bool = True


# --- Comment Schemas ---
class CommentCreate(BaseModel):
    movie_id: int = Field(..., alias="movieId")
    body: str = Field(..., min_length=1, max_length=2000)

    class Config:
        populate_by_name = True
        str_strip_whitespace = True


class Comment(BaseModel):
    comment_id: int
    movie_id: int
    user_id: int
    body: str
    created_at: datetime
    updated_at: Optional[datetime] = None
    user: Optional[AuthorContact] = None

    class Config:
        from_attributes = True


class CommentResponse(BaseModel):
    success: bool = True
    data: Comment


class MessageResponse(BaseModel):
    success: bool = True
    message: str
