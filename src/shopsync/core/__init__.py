"""Core module - Shared configuration and status vocabulary."""

from shopsync.core.config import ServerConfig, SyncSettings, normalize_base_url
from shopsync.core.types import (
    DEFAULT_STATUS,
    STATUS_ALIASES,
    STATUS_LABELS,
    KnownStatus,
    RepairStatus,
    StatusValue,
    UnknownStatus,
    parse_status,
    to_code,
    to_label,
)

__all__ = [
    # Config
    "ServerConfig",
    "SyncSettings",
    "normalize_base_url",
    # Status
    "DEFAULT_STATUS",
    "KnownStatus",
    "RepairStatus",
    "STATUS_ALIASES",
    "STATUS_LABELS",
    "StatusValue",
    "UnknownStatus",
    "parse_status",
    "to_code",
    "to_label",
]
