import pytest

from app.config import Settings
from app.database import create_engine_from_settings


def test_cors_origins_parsed():
    settings = Settings(cors_origins="https://a.example, https://b.example,")
    assert settings.get_cors_origins() == ["https://a.example", "https://b.example"]


def test_production_rejects_placeholder_database():
    settings = Settings(environment="production", jwt_secret="s3cret", cors_origins="https://app.example")
    with pytest.raises(ValueError, match="DATABASE_URL"):
        settings.validate_production()


def test_production_rejects_default_jwt_secret():
    settings = Settings(
        environment="production",
        database_url="postgresql+asyncpg://todo:real@db:5432/todo_app",
        cors_origins="https://app.example",
    )
    with pytest.raises(ValueError, match="JWT_SECRET"):
        settings.validate_production()


def test_production_rejects_localhost_cors():
    settings = Settings(
        environment="production",
        database_url="postgresql+asyncpg://todo:real@db:5432/todo_app",
        jwt_secret="s3cret",
        cors_origins="http://localhost:3000",
    )
    with pytest.raises(ValueError, match="localhost"):
        settings.validate_production()


def test_development_skips_checks():
    Settings(environment="development").validate_production()


async def test_engine_uses_pool_settings():
    engine = create_engine_from_settings(
        Settings(db_pool_size=3, db_max_overflow=2, log_level="info")
    )
    try:
        assert engine.sync_engine.pool.size() == 3
        assert engine.sync_engine.echo is False
    finally:
        await engine.dispose()


async def test_engine_echo_follows_debug_log_level():
    engine = create_engine_from_settings(Settings(log_level="DEBUG"))
    try:
        assert engine.sync_engine.echo is True
    finally:
        await engine.dispose()
