# Configuration
#
# Settings come from environment variables, optionally seeded from a
# .env file in the working directory (python-dotenv).
#
#   PASSWOOD_DATA_DIR         directory of .pass files (local store)
#   PASSWOOD_AUDIT_LOG_DIR    audit log directory
#   PASSWOOD_KDF_ITERATIONS   PBKDF2 iterations for new saves (>= 600000)
#   PASSWOOD_CIPHER           aes-256-gcm | chacha20-poly1305
#   PASSWOOD_SESSION_TIMEOUT  idle seconds before auto-lock (0 disables)
#   PASSWOOD_SERVER_URL       remote blob store base URL (optional)
#   PASSWOOD_APP_PASSWORD     x-app-password for the remote store (optional)

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import find_dotenv, load_dotenv

from .vault import cipher, kdf

DEFAULT_DATA_DIR = "data/passwords"
DEFAULT_AUDIT_LOG_DIR = "audit_logs"
DEFAULT_SESSION_TIMEOUT = 300


class ConfigError(ValueError):
    """Raised for invalid configuration values."""


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    audit_log_dir: Path
    kdf_iterations: int
    cipher_algorithm_id: int
    session_timeout: float
    server_url: Optional[str] = None
    app_password: Optional[str] = None


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None


def load_settings(env: Optional[Mapping[str, str]] = None, dotenv: bool = True) -> Settings:
    """Build Settings from the environment.

    Args:
        env: Mapping to read instead of os.environ.
        dotenv: Load a .env file into os.environ first.

    Raises:
        ConfigError: A value is malformed or out of range.
    """
    if env is None:
        if dotenv:
            load_dotenv(find_dotenv(usecwd=True))
        env = os.environ

    iterations = _int(env, "PASSWOOD_KDF_ITERATIONS", kdf.DEFAULT_ITERATIONS)
    if not kdf.MIN_ITERATIONS <= iterations <= kdf.MAX_ITERATIONS:
        raise ConfigError(
            f"PASSWOOD_KDF_ITERATIONS must be between {kdf.MIN_ITERATIONS} "
            f"and {kdf.MAX_ITERATIONS}"
        )

    cipher_name = env.get("PASSWOOD_CIPHER", "aes-256-gcm").strip().lower()
    if cipher_name not in cipher.ALGORITHM_NAMES:
        raise ConfigError(
            f"PASSWOOD_CIPHER must be one of {', '.join(sorted(cipher.ALGORITHM_NAMES))}"
        )

    timeout = _int(env, "PASSWOOD_SESSION_TIMEOUT", DEFAULT_SESSION_TIMEOUT)
    if timeout < 0:
        raise ConfigError("PASSWOOD_SESSION_TIMEOUT cannot be negative")

    server_url = env.get("PASSWOOD_SERVER_URL") or None
    if server_url and not server_url.startswith(("http://", "https://")):
        raise ConfigError("PASSWOOD_SERVER_URL must be an http(s) URL")

    return Settings(
        data_dir=Path(env.get("PASSWOOD_DATA_DIR") or DEFAULT_DATA_DIR),
        audit_log_dir=Path(env.get("PASSWOOD_AUDIT_LOG_DIR") or DEFAULT_AUDIT_LOG_DIR),
        kdf_iterations=iterations,
        cipher_algorithm_id=cipher.ALGORITHM_NAMES[cipher_name],
        session_timeout=float(timeout),
        server_url=server_url.rstrip("/") if server_url else None,
        app_password=env.get("PASSWOOD_APP_PASSWORD") or None,
    )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Process-wide settings, loaded on first use."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def set_settings(settings: Optional[Settings]) -> None:
    global _settings
    _settings = settings
