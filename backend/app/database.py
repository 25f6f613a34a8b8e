"""Database connection and session management"""
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, URL
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from typing import Generator, Optional, Union
import logging

from app.config import DatabaseConfig, parse_port
from app.errors import DatabaseError

logger = logging.getLogger(__name__)

# Session factory, bound to an engine by connect()
SessionLocal = sessionmaker(autocommit=False, autoflush=False)

# Base class for models
Base = declarative_base()


def database_url(cfg: DatabaseConfig) -> URL:
    """
    Build the PostgreSQL URL for a database section

    Raises:
        DatabaseError: If the port is not a valid TCP port
    """
    try:
        port = parse_port(cfg.port)
    except ValueError as e:
        raise DatabaseError(f"Invalid database port {cfg.port!r}") from e

    return URL.create(
        "postgresql+psycopg",
        username=cfg.user,
        password=cfg.password,
        host=cfg.host,
        port=port,
        database=cfg.name,
        query={"sslmode": cfg.sslmode},
    )


def connect(cfg: DatabaseConfig, url: Optional[Union[str, URL]] = None) -> Engine:
    """
    Create the connection pool and verify the database is reachable

    Args:
        cfg: Database section of the configuration
        url: Optional URL overriding the one built from cfg

    Returns:
        SQLAlchemy engine

    Raises:
        DatabaseError: If the engine cannot be created or the database is unreachable
    """
    url = url if url is not None else database_url(cfg)
    is_sqlite = str(url).startswith("sqlite")

    if is_sqlite:
        options = {"connect_args": {"check_same_thread": False}}
    else:
        options = {
            "pool_size": cfg.max_connections,
            "max_overflow": 0,
            "pool_recycle": int(cfg.max_idle_time.total_seconds()),
            "pool_pre_ping": True,
        }

    try:
        engine = create_engine(url, echo=False, **options)
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to connect to database at {cfg.host}:{cfg.port}/{cfg.name}") from e

    SessionLocal.configure(bind=engine)
    logger.info(f"Connected to database {cfg.name} at {cfg.host}:{cfg.port}")
    return engine


def migrate(engine: Engine) -> None:
    """Create any tables registered on Base that do not exist yet"""
    try:
        Base.metadata.create_all(bind=engine)
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to run database migrations") from e
    logger.info(f"Database migrations applied ({len(Base.metadata.tables)} tables)")


def ping(engine: Engine) -> bool:
    """Return True when the database answers a trivial query"""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.warning(f"Database health check failed: {e}")
        return False


def get_db() -> Generator:
    """
    Dependency function to get database session.

    Yields:
        Database session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
