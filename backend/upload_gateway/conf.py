"""
Runtime configuration for the upload gateway.

The gateway reads one settings dictionary, ``UPLOAD_GATEWAY``, and turns it
into an immutable ``GatewayConfig``. The value is built once and cached; it
is rebuilt only when Django reports that ``UPLOAD_GATEWAY`` changed (which
happens under ``override_settings`` in tests).

Example:
    # In settings.py
    UPLOAD_GATEWAY = {
        'UPLOAD_DIR': BASE_DIR / 'uploads',
    }
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from django.conf import settings
from django.core.signals import setting_changed
from django.dispatch import receiver

from .constants import (
    ALLOWED_MIME_TYPES,
    MAX_FILE_SIZE,
    MAX_FILES_PER_REQUEST,
    SETTINGS_KEY,
    UPLOAD_SUBDIRECTORY,
)


@dataclass(frozen=True)
class GatewayConfig:
    """Upload directory and acceptance limits shared by every gateway operation."""

    upload_dir: Path
    max_file_size: int = MAX_FILE_SIZE
    max_files: int = MAX_FILES_PER_REQUEST
    allowed_mime_types: Tuple[str, ...] = ALLOWED_MIME_TYPES

    @property
    def resolved_upload_dir(self) -> Path:
        return self.upload_dir.resolve()


_config: Optional[GatewayConfig] = None


def _default_upload_dir() -> Path:
    return Path(settings.BASE_DIR) / UPLOAD_SUBDIRECTORY


def load_gateway_config() -> GatewayConfig:
    """Build a GatewayConfig from the current Django settings."""
    user_settings = getattr(settings, SETTINGS_KEY, None) or {}
    upload_dir = user_settings.get('UPLOAD_DIR') or _default_upload_dir()
    return GatewayConfig(upload_dir=Path(upload_dir))


def get_gateway_config() -> GatewayConfig:
    """Return the process-wide GatewayConfig, loading it on first use."""
    global _config
    if _config is None:
        _config = load_gateway_config()
    return _config


@receiver(setting_changed)
def reload_gateway_config(*, setting, **kwargs):
    global _config
    if setting in (SETTINGS_KEY, 'BASE_DIR'):
        _config = None
