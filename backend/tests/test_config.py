"""Configuration loading from environment variables"""
from datetime import timedelta
import logging

import pytest
from pydantic import ValidationError

from app.config import Config, ConfigDiagnostic, load, parse_int, parse_port

DEFAULT_STRINGS = [
    ("APP_NAME", "app", "name", "Flex Media Server"),
    ("ENV", "app", "environment", "development"),
    ("HOST", "app", "host", "0.0.0.0"),
    ("PORT", "app", "port", "8080"),
    ("DB_HOST", "database", "host", "localhost"),
    ("DB_PORT", "database", "port", "5432"),
    ("DB_USER", "database", "user", "flex_user"),
    ("DB_PASSWORD", "database", "password", "flex_password"),
    ("DB_NAME", "database", "name", "flex_dev"),
    ("DB_SSLMODE", "database", "sslmode", "disable"),
    ("REDIS_HOST", "redis", "host", "localhost"),
    ("REDIS_PORT", "redis", "port", "6379"),
    ("REDIS_PASSWORD", "redis", "password", ""),
    ("JWT_SECRET", "jwt", "secret", "your-secret-key"),
    ("MEDIA_ROOT_PATH", "media", "root_path", "/media/library"),
    ("UPLOAD_PATH", "media", "upload_path", "/tmp/flex-uploads"),
    ("POSTER_PATH", "media", "poster_path", "/tmp/flex-posters"),
    ("THUMBNAIL_PATH", "media", "thumbnail_path", "/tmp/flex-thumbnails"),
    ("FFMPEG_PATH", "media", "ffmpeg_path", "ffmpeg"),
    ("MEDIAINFO_PATH", "media", "mediainfo_path", "mediainfo"),
    ("TMDB_API_KEY", "external", "tmdb_api_key", ""),
    ("OMDB_API_KEY", "external", "omdb_api_key", ""),
    ("LOG_LEVEL", "logging", "level", "info"),
    ("LOG_FORMAT", "logging", "format", "console"),
]

DEFAULT_INTEGERS = [
    ("DB_MAX_CONNECTIONS", "database", "max_connections", 25),
    ("REDIS_DB", "redis", "db", 0),
]

DEFAULT_DURATIONS = [
    ("DB_MAX_IDLE_TIME", "database", "max_idle_time", timedelta(minutes=15)),
    ("JWT_EXPIRES_IN", "jwt", "expires_in", timedelta(hours=24)),
]


def field(cfg: Config, section: str, attribute: str):
    return getattr(getattr(cfg, section), attribute)


def test_empty_environment_yields_defaults():
    cfg = load()

    for _, section, attribute, default in DEFAULT_STRINGS + DEFAULT_INTEGERS + DEFAULT_DURATIONS:
        assert field(cfg, section, attribute) == default, attribute
    assert cfg.app.origins == ("http://localhost:3000",)
    assert cfg.diagnostics == ()


@pytest.mark.parametrize("variable, section, attribute, default", DEFAULT_STRINGS)
def test_string_override(clean_env, variable, section, attribute, default):
    clean_env.setenv(variable, "custom-value")
    assert field(load(), section, attribute) == "custom-value"


@pytest.mark.parametrize("variable, section, attribute, default", DEFAULT_STRINGS)
def test_empty_string_falls_back(clean_env, variable, section, attribute, default):
    clean_env.setenv(variable, "")
    assert field(load(), section, attribute) == default


def test_string_values_are_not_trimmed(clean_env):
    clean_env.setenv("JWT_SECRET", "  spaced secret ")
    assert load().jwt.secret == "  spaced secret "


@pytest.mark.parametrize("variable, section, attribute, default", DEFAULT_INTEGERS)
@pytest.mark.parametrize("raw, expected", [("7", 7), ("+7", 7), ("-3", -3), ("0", 0)])
def test_integer_override(clean_env, variable, section, attribute, default, raw, expected):
    clean_env.setenv(variable, raw)
    assert field(load(), section, attribute) == expected


@pytest.mark.parametrize("variable, section, attribute, default", DEFAULT_INTEGERS)
@pytest.mark.parametrize("raw", ["abc", "notanumber", "1.5", " 5", "5 ", "1_000", "0x10", "99999999999999999999"])
def test_malformed_integer_falls_back(clean_env, variable, section, attribute, default, raw):
    clean_env.setenv(variable, raw)
    assert field(load(), section, attribute) == default


@pytest.mark.parametrize("variable, section, attribute, default", DEFAULT_DURATIONS)
def test_duration_override(clean_env, variable, section, attribute, default):
    clean_env.setenv(variable, "10s")
    assert field(load(), section, attribute) == timedelta(seconds=10)


@pytest.mark.parametrize("variable, section, attribute, default", DEFAULT_DURATIONS)
@pytest.mark.parametrize("raw", ["nope", "10", "1d", "PT10S"])
def test_malformed_duration_falls_back(clean_env, variable, section, attribute, default, raw):
    clean_env.setenv(variable, raw)
    assert field(load(), section, attribute) == default


def test_max_connections_not_a_number_uses_default(clean_env):
    clean_env.setenv("DB_MAX_CONNECTIONS", "notanumber")
    cfg = load()
    assert cfg.database.max_connections == 25


def test_jwt_expiry_48_hours(clean_env):
    clean_env.setenv("JWT_EXPIRES_IN", "48h")
    assert load().jwt.expires_in == timedelta(hours=48)


def test_redis_db(clean_env):
    clean_env.setenv("REDIS_DB", "3")
    assert load().redis.db == 3

    clean_env.delenv("REDIS_DB")
    assert load().redis.db == 0


def test_origins_are_split_in_order(clean_env):
    clean_env.setenv("ALLOWED_ORIGINS", "http://a.com,http://b.com")
    assert load().app.origins == ("http://a.com", "http://b.com")


def test_origins_are_not_trimmed(clean_env):
    clean_env.setenv("ALLOWED_ORIGINS", "http://a.com, http://b.com,")
    assert load().app.origins == ("http://a.com", " http://b.com", "")


def test_empty_origins_fall_back_to_default(clean_env):
    clean_env.setenv("ALLOWED_ORIGINS", "")
    assert load().app.origins == ("http://localhost:3000",)


def test_load_is_idempotent(clean_env):
    clean_env.setenv("APP_NAME", "Living Room")
    clean_env.setenv("DB_MAX_IDLE_TIME", "5m")
    clean_env.setenv("REDIS_DB", "bad")

    assert load() == load()


def test_unknown_variables_are_ignored(clean_env):
    clean_env.setenv("FLEX_UNUSED", "1")
    with_unknown = load()

    clean_env.delenv("FLEX_UNUSED")
    assert with_unknown == load()


def test_snapshot_is_read_only():
    cfg = load()
    with pytest.raises(ValidationError):
        cfg.app.port = "9090"
    with pytest.raises(ValidationError):
        cfg.database = cfg.database


def test_is_production(clean_env):
    assert not load().is_production
    clean_env.setenv("ENV", "production")
    assert load().is_production


def test_fallbacks_are_reported(clean_env, caplog):
    clean_env.setenv("DB_MAX_CONNECTIONS", "lots")
    clean_env.setenv("JWT_EXPIRES_IN", "forever")
    clean_env.setenv("REDIS_DB", "2")

    with caplog.at_level(logging.WARNING, logger="app.config"):
        cfg = load()

    assert [(d.variable, d.value, d.default) for d in cfg.diagnostics] == [
        ("DB_MAX_CONNECTIONS", "lots", 25),
        ("JWT_EXPIRES_IN", "forever", timedelta(hours=24)),
    ]
    assert all(isinstance(d, ConfigDiagnostic) and d.reason for d in cfg.diagnostics)

    warned = [record.variable for record in caplog.records if record.name == "app.config"]
    assert warned == ["DB_MAX_CONNECTIONS", "JWT_EXPIRES_IN"]


def test_missing_values_are_not_reported(clean_env, caplog):
    clean_env.setenv("DB_MAX_CONNECTIONS", "")
    with caplog.at_level(logging.WARNING, logger="app.config"):
        cfg = load()
    assert cfg.diagnostics == ()
    assert not caplog.records


def test_diagnostics_do_not_leak_between_loads(clean_env):
    clean_env.setenv("REDIS_DB", "x")
    assert len(load().diagnostics) == 1

    clean_env.delenv("REDIS_DB")
    assert load().diagnostics == ()


@pytest.mark.parametrize("raw, expected", [("42", 42), ("-42", -42), ("+0", 0), (9, 9)])
def test_parse_int(raw, expected):
    assert parse_int(raw) == expected


@pytest.mark.parametrize("raw", ["", "4 2", "٣", "1e3", True, None, "9223372036854775808"])
def test_parse_int_rejects(raw):
    with pytest.raises(ValueError):
        parse_int(raw)


@pytest.mark.parametrize("variable", ["db_host", "Db_Host", "host", "app_name"])
def test_variable_names_are_case_sensitive(clean_env, variable):
    defaults = load()
    clean_env.setenv(variable, "evil.example")

    cfg = load()

    assert cfg == defaults
    assert cfg.database.host == "localhost"
    assert cfg.app.host == "0.0.0.0"


def test_exact_name_wins_over_lowercase(clean_env):
    clean_env.setenv("HOST", "10.0.0.1")
    clean_env.setenv("host", "10.0.0.2")
    assert load().app.host == "10.0.0.1"


@pytest.mark.parametrize("raw, expected", [("0", 0), ("8080", 8080), ("65535", 65535)])
def test_parse_port(raw, expected):
    assert parse_port(raw) == expected


@pytest.mark.parametrize("raw", ["", "http", "5433x", "²", "٣", " 80", "-1", "65536"])
def test_parse_port_rejects(raw):
    with pytest.raises(ValueError):
        parse_port(raw)
