# bmw_saver/config/errors.py
from __future__ import annotations


class ConfigError(ValueError):
    """Ошибка конфигурации: битое расписание, паттерн, время и т.п."""


class InvalidTimeZone(ConfigError):
    pass


class InvalidTimeFormat(ConfigError):
    pass


class InvalidPattern(ConfigError):
    pass


class InvalidDuration(ConfigError):
    pass
