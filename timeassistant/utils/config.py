import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from timeassistant.utils.logging import Logger

_TRUE_VALUES = ('1', 'true', 'yes', 'on')
_FALSE_VALUES = ('0', 'false', 'no', 'off')


@dataclass(frozen=True)
class Settings:
    ntp_server: str = 'pool.ntp.org'
    ntp_port: int = 123
    timeout_ms: int = 5000
    throw_on_timeout: bool = True
    log_level: str = 'INFO'


def _get_int(name, default):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        Logger().warning(f"{name}={raw!r} is not an integer, using {default}")
        return default
    if value <= 0:
        Logger().warning(f"{name}={raw!r} must be positive, using {default}")
        return default
    return value


def _get_bool(name, default):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    Logger().warning(f"{name}={raw!r} is not a boolean, using {default}")
    return default


def load_settings(env_file: Optional[str] = None) -> Settings:
    """Load settings from the environment, after reading a .env file if present.

    Variables already set in the environment win over the .env file.
    """
    load_dotenv(env_file)

    defaults = Settings()
    return Settings(
        ntp_server=(os.getenv('NTP_SERVER') or '').strip() or defaults.ntp_server,
        ntp_port=_get_int('NTP_PORT', defaults.ntp_port),
        timeout_ms=_get_int('NTP_TIMEOUT_MS', defaults.timeout_ms),
        throw_on_timeout=_get_bool('NTP_THROW_ON_TIMEOUT', defaults.throw_on_timeout),
        log_level=(os.getenv('LOG_LEVEL') or defaults.log_level).upper(),
    )
