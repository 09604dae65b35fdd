# movie_maze/config.py
import os
import re
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional

from dotenv import load_dotenv

# --- Load .env from the project root (one level above this package) ---
package_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(package_dir)
dotenv_path = os.path.join(project_root, '.env')

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$")
_DURATION_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration(value: str) -> timedelta:
    """Parses '30d', '12h', '15m', '45s' or a bare number of seconds."""
    match = _DURATION_RE.match(value or "")
    if not match:
        raise ValueError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    return timedelta(seconds=int(amount) * _DURATION_UNITS[unit])


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    database_url: str = "sqlite:///./movie_maze.db"
    jwt_secret: str = "secret"
    jwt_expires_in: str = "30d"
    cookie_expires_in: int = 86400
    cors_origin: str = "http://localhost:5173"
    environment: str = "development"
    max_file_size: int = 5 * 1024 * 1024
    upload_dir: str = "public/uploads"
    base_url: str = "http://localhost:5000"
    salt_rounds: int = 10
    api_prefix: str = ""
    rate_limit_enabled: bool = False
    rate_limit_default: str = "100/15minutes"
    rate_limit_auth: str = "20/15minutes"
    log_level: str = "INFO"
    port: int = 5000
    allowed_image_types: tuple = field(default=("image/jpeg", "image/png", "image/webp"))

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def token_lifetime(self) -> timedelta:
        return parse_duration(self.jwt_expires_in)


def load_settings(env_file: Optional[str] = None) -> Settings:
    """Builds Settings from the .env file and the process environment."""
    path = env_file or dotenv_path
    if not load_dotenv(dotenv_path=path):
        logging.debug(f".env file not found or not loaded from path: {path}")

    environment = os.getenv("APP_ENV") or os.getenv("NODE_ENV") or "development"
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./movie_maze.db"),
        jwt_secret=os.getenv("JWT_SECRET", "secret"),
        jwt_expires_in=os.getenv("JWT_EXPIRES_IN", "30d"),
        cookie_expires_in=int(os.getenv("COOKIE_EXPIRES_IN", "86400")),
        cors_origin=os.getenv("CORS_ORIGIN", "http://localhost:5173"),
        environment=environment,
        max_file_size=int(os.getenv("MAX_FILE_SIZE", str(5 * 1024 * 1024))),
        upload_dir=os.getenv("UPLOAD_DIR", "public/uploads"),
        base_url=os.getenv("BASE_URL", "http://localhost:5000").rstrip("/"),
        salt_rounds=int(os.getenv("SALT_ROUNDS", "10")),
        api_prefix=os.getenv("API_PREFIX", "").rstrip("/"),
        # Off by default while developing
        rate_limit_enabled=_env_bool("RATE_LIMIT_ENABLED", environment != "development"),
        rate_limit_default=os.getenv("RATE_LIMIT_DEFAULT", "100/15minutes"),
        rate_limit_auth=os.getenv("RATE_LIMIT_AUTH", "20/15minutes"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        port=int(os.getenv("PORT", "5000")),
    )
