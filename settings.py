"""
Settings Module
Configuration read from environment variables, plus logging setup.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent
DEFAULT_TEMPLATES_DIR = PROJECT_ROOT / 'format_templates'


def _env_int(name: str, default: int) -> int:
    """Read an int env var with a default."""
    value = os.getenv(name)
    if value is None or value == '':
        return default
    return int(value)


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or value == '':
        return default
    return value


def _env_path(name: str, default: Path) -> Path:
    value = os.getenv(name)
    if not value:
        return default
    path = Path(value)
    if not path.is_absolute():
        path = PROJECT_ROOT / path
    return path


@dataclass(frozen=True)
class Settings:
    """Configuration values parsed from the environment."""
    default_lyric: str
    max_upload_bytes: int
    templates_dir: Path
    log_level: str


def load_settings() -> Settings:
    return Settings(
        default_lyric=_env_str('VOCONV_DEFAULT_LYRIC', 'あ'),
        max_upload_bytes=_env_int('VOCONV_MAX_UPLOAD_BYTES', 16 * 1024 * 1024),  # 16MB
        templates_dir=_env_path('VOCONV_TEMPLATES_DIR', DEFAULT_TEMPLATES_DIR),
        log_level=_env_str('LOG_LEVEL', 'INFO').upper(),
    )


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level,
        format='%(asctime)s %(levelname)s %(name)s %(filename)s:%(lineno)d %(message)s',
    )
