"""Application configuration"""
from contextvars import ContextVar
from datetime import timedelta
from typing import Annotated, Any, List, NamedTuple, Optional, Tuple
import logging
import re

from pydantic import BaseModel, BeforeValidator, ConfigDict, ValidationError, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.utils.duration import parse_duration

logger = logging.getLogger(__name__)

_INT_PATTERN = re.compile(r"[+-]?[0-9]+")
_INT_MIN = -(2 ** 63)
_INT_MAX = 2 ** 63 - 1


def parse_int(value: Any) -> int:
    """
    Strict base-10 integer parsing

    Accepts an optional sign followed by ASCII digits only; whitespace,
    underscores and out-of-range (signed 64-bit) values are rejected.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if not isinstance(value, str) or not _INT_PATTERN.fullmatch(value):
        raise ValueError(f"invalid integer {value!r}")
    number = int(value)
    if not _INT_MIN <= number <= _INT_MAX:
        raise ValueError(f"integer out of range {value!r}")
    return number


def parse_port(value: str) -> int:
    """Parse a TCP port given as a string of ASCII digits (0-65535)"""
    if not isinstance(value, str) or not value.isascii() or not value.isdigit():
        raise ValueError(f"invalid port {value!r}")
    port = int(value)
    if port > 65535:
        raise ValueError(f"port out of range {value!r}")
    return port


def _to_duration(value: Any) -> timedelta:
    if isinstance(value, timedelta):
        return value
    return parse_duration(value)


Integer = Annotated[int, BeforeValidator(parse_int)]
Duration = Annotated[timedelta, BeforeValidator(_to_duration)]


class ConfigDiagnostic(NamedTuple):
    """A present environment value that could not be coerced and was replaced by its default"""

    variable: str
    value: str
    default: Any
    reason: str


# Collects fallbacks for the load() call in progress
_diagnostics: ContextVar[Optional[List[ConfigDiagnostic]]] = ContextVar("config_diagnostics", default=None)


class Settings(BaseSettings):
    """
    Raw settings read from environment variables

    Each field is one variable, matched by its exact name: the annotation
    selects the coercion and the default is the fallback used when the
    variable is unset, empty or malformed. Other names, including the
    lower-case forms of these, are ignored.
    """

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_ignore_empty=True,
        extra="ignore",
        frozen=True,
    )

    # Application
    APP_NAME: str = "Flex Media Server"
    ENV: str = "development"
    HOST: str = "0.0.0.0"
    PORT: str = "8080"
    ALLOWED_ORIGINS: str = "http://localhost:3000"  # comma-separated

    # Database
    DB_HOST: str = "localhost"
    DB_PORT: str = "5432"
    DB_USER: str = "flex_user"
    DB_PASSWORD: str = "flex_password"
    DB_NAME: str = "flex_dev"
    DB_SSLMODE: str = "disable"
    DB_MAX_CONNECTIONS: Integer = 25
    DB_MAX_IDLE_TIME: Duration = timedelta(minutes=15)

    # Redis
    REDIS_HOST: str = "localhost"
    REDIS_PORT: str = "6379"
    REDIS_PASSWORD: str = ""
    REDIS_DB: Integer = 0

    # JWT
    JWT_SECRET: str = "your-secret-key"
    JWT_EXPIRES_IN: Duration = timedelta(hours=24)

    # Media
    MEDIA_ROOT_PATH: str = "/media/library"
    UPLOAD_PATH: str = "/tmp/flex-uploads"
    POSTER_PATH: str = "/tmp/flex-posters"
    THUMBNAIL_PATH: str = "/tmp/flex-thumbnails"
    FFMPEG_PATH: str = "ffmpeg"
    MEDIAINFO_PATH: str = "mediainfo"

    # External metadata providers
    TMDB_API_KEY: str = ""
    OMDB_API_KEY: str = ""

    # Logging
    LOG_LEVEL: str = "info"
    LOG_FORMAT: str = "console"

    @field_validator("*", mode="wrap")
    @classmethod
    def _fall_back_to_default(cls, value: Any, handler, info: ValidationInfo) -> Any:
        """Replace any value that fails coercion with the field default"""
        try:
            return handler(value)
        except ValidationError as exc:
            variable = info.field_name
            default = cls.model_fields[info.field_name].default
            reason = exc.errors()[0]["msg"]
            diagnostic = ConfigDiagnostic(variable, str(value), default, reason)

            collected = _diagnostics.get()
            if collected is not None:
                collected.append(diagnostic)
            logger.warning(
                f"Invalid value for {variable}, using default",
                extra={"variable": variable, "value": str(value), "default": str(default), "reason": reason},
            )
            return default


class Section(BaseModel):
    """Base class for immutable configuration sections"""

    model_config = ConfigDict(frozen=True)


class AppConfig(Section):
    name: str
    environment: str
    host: str
    port: str
    origins: Tuple[str, ...]


class DatabaseConfig(Section):
    host: str
    port: str
    user: str
    password: str
    name: str
    sslmode: str
    max_connections: int
    max_idle_time: timedelta


class RedisConfig(Section):
    host: str
    port: str
    password: str
    db: int


class JWTConfig(Section):
    secret: str
    expires_in: timedelta


class MediaConfig(Section):
    """Filesystem locations and external tool paths used for media processing"""

    root_path: str
    upload_path: str
    poster_path: str
    thumbnail_path: str
    ffmpeg_path: str
    mediainfo_path: str


class ExternalConfig(Section):
    tmdb_api_key: str
    omdb_api_key: str


class LoggingConfig(Section):
    level: str
    format: str


class Config(Section):
    """Resolved configuration snapshot, built once at startup"""

    app: AppConfig
    database: DatabaseConfig
    redis: RedisConfig
    jwt: JWTConfig
    media: MediaConfig
    external: ExternalConfig
    logging: LoggingConfig
    diagnostics: Tuple[ConfigDiagnostic, ...] = ()

    @property
    def is_production(self) -> bool:
        return self.app.environment == "production"

    @classmethod
    def from_settings(cls, settings: Settings, diagnostics: Tuple[ConfigDiagnostic, ...] = ()) -> "Config":
        """Group flat settings into sections"""
        return cls(
            app=AppConfig(
                name=settings.APP_NAME,
                environment=settings.ENV,
                host=settings.HOST,
                port=settings.PORT,
                # Entries are not trimmed
                origins=tuple(settings.ALLOWED_ORIGINS.split(",")),
            ),
            database=DatabaseConfig(
                host=settings.DB_HOST,
                port=settings.DB_PORT,
                user=settings.DB_USER,
                password=settings.DB_PASSWORD,
                name=settings.DB_NAME,
                sslmode=settings.DB_SSLMODE,
                max_connections=settings.DB_MAX_CONNECTIONS,
                max_idle_time=settings.DB_MAX_IDLE_TIME,
            ),
            redis=RedisConfig(
                host=settings.REDIS_HOST,
                port=settings.REDIS_PORT,
                password=settings.REDIS_PASSWORD,
                db=settings.REDIS_DB,
            ),
            jwt=JWTConfig(
                secret=settings.JWT_SECRET,
                expires_in=settings.JWT_EXPIRES_IN,
            ),
            media=MediaConfig(
                root_path=settings.MEDIA_ROOT_PATH,
                upload_path=settings.UPLOAD_PATH,
                poster_path=settings.POSTER_PATH,
                thumbnail_path=settings.THUMBNAIL_PATH,
                ffmpeg_path=settings.FFMPEG_PATH,
                mediainfo_path=settings.MEDIAINFO_PATH,
            ),
            external=ExternalConfig(
                tmdb_api_key=settings.TMDB_API_KEY,
                omdb_api_key=settings.OMDB_API_KEY,
            ),
            logging=LoggingConfig(
                level=settings.LOG_LEVEL,
                format=settings.LOG_FORMAT,
            ),
            diagnostics=diagnostics,
        )


def load() -> Config:
    """
    Load configuration from environment variables

    Never raises for bad input: unset or empty variables take their
    default, and malformed integers or durations take their default and
    are reported in Config.diagnostics.

    Returns:
        Fully populated configuration snapshot
    """
    token = _diagnostics.set([])
    try:
        settings = Settings()
        diagnostics = tuple(_diagnostics.get())
    finally:
        _diagnostics.reset(token)

    return Config.from_settings(settings, diagnostics)
