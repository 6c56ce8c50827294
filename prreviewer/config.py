"""Конфигурация сервиса назначения ревьюверов.

Значения читаются из переменных окружения (и из файла ``.env`` в рабочей
директории, если он есть), иначе берутся значения по умолчанию.

Пример:
    DB_ENGINE=postgresql DB_HOST=db DB_NAME=reviewer-pr-db
    LOG_FORMAT=json LOG_LEVEL=DEBUG
    APP_RANDOM_SEED=42
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseConfig(BaseSettings):
    """Подключение к базе данных.

    Attributes:
        engine: ``sqlite`` - локальный файл, ``postgresql`` - сервер
        name: Имя базы (путь к файлу для SQLite)
        host: Хост сервера
        port: Порт сервера
        user: Пользователь
        password: Пароль
        sslmode: Режим SSL libpq
        conn_max_age: Время жизни постоянного соединения в секундах
    """

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        env_file=".env",
        extra="ignore",
    )

    engine: Literal["sqlite", "postgresql"] = "sqlite"
    name: str = "db.sqlite3"
    host: str = "localhost"
    port: int = Field(default=5432, ge=1, le=65535)
    user: str = "reviewer"
    password: str = ""
    sslmode: str = "disable"
    conn_max_age: int = Field(default=0, ge=0)


class LoggingConfig(BaseSettings):
    """Логирование.

    Attributes:
        level: Уровень корневого логгера
        format: ``console`` - для чтения глазами, ``json`` - для сборщика логов
    """

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        extra="ignore",
    )

    level: str = "INFO"
    format: Literal["console", "json"] = "console"

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {v}")
        return level


class AppConfig(BaseSettings):
    """Настройки приложения.

    Attributes:
        debug: Режим отладки Django
        secret_key: SECRET_KEY Django
        allowed_hosts: Допустимые имена хостов
        port: Порт для ``manage.py runserver`` без аргументов
        random_seed: Seed для выбора ревьюверов, если не задан - случайный
        max_reviewers: Сколько ревьюверов назначать на новый PR, не больше двух
    """

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        extra="ignore",
    )

    debug: bool = False
    secret_key: str = "insecure-dev-key-change-me"
    allowed_hosts: list[str] = Field(default_factory=lambda: ["*"])
    port: int = Field(default=8080, ge=1, le=65535)
    random_seed: int | None = None
    max_reviewers: int = Field(default=2, ge=1, le=2)


class Config:
    """Все группы настроек сервиса"""

    def __init__(
        self,
        database: DatabaseConfig | None = None,
        logging: LoggingConfig | None = None,
        app: AppConfig | None = None,
    ) -> None:
        self.database = database or DatabaseConfig()
        self.logging = logging or LoggingConfig()
        self.app = app or AppConfig()


def load_config() -> Config:
    """Собирает конфигурацию из окружения"""
    return Config()
