"""Shared types for shopsync.

This module defines the repair status vocabulary shared by the client,
the reconcilers and the reference server.

The remote stores a repair status as a compact numeric code, while the
local domain model works with the long-form label shown to staff. The
mapping is a tagged variant: a value is either a KnownStatus (one of the
codes below) or an UnknownStatus that is carried through verbatim so that
newer server values never block a sync.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class RepairStatus(IntEnum):
    """Known repair status codes."""

    QUEUED = 1
    IN_PROGRESS = 2
    WAITING = 3
    READY = 4
    NO_ANSWER = 5
    ISSUED = 6
    ODESA = 7

    @property
    def label(self) -> str:
        """Canonical long-form label for this status."""
        return STATUS_LABELS[self]


STATUS_LABELS: dict[RepairStatus, str] = {
    RepairStatus.QUEUED: "У черзі",
    RepairStatus.IN_PROGRESS: "У роботі",
    RepairStatus.WAITING: "Очікув. відпов./деталі",
    RepairStatus.READY: "Готовий до видачі",
    RepairStatus.NO_ANSWER: "Не додзвонилися",
    RepairStatus.ISSUED: "Видано",
    RepairStatus.ODESA: "Одеса",
}

# Legacy spellings still produced by older desktop builds
STATUS_ALIASES: dict[str, RepairStatus] = {
    "Очікування": RepairStatus.WAITING,
    "Готовий": RepairStatus.READY,
    "Не додзвонились": RepairStatus.NO_ANSWER,
}

DEFAULT_STATUS = RepairStatus.QUEUED

_LABEL_TO_STATUS: dict[str, RepairStatus] = {
    **{label: status for status, label in STATUS_LABELS.items()},
    **STATUS_ALIASES,
}


@dataclass(frozen=True)
class KnownStatus:
    """A status value that maps onto a RepairStatus."""

    status: RepairStatus

    @property
    def label(self) -> str:
        return self.status.label

    @property
    def code(self) -> int:
        return int(self.status)


@dataclass(frozen=True)
class UnknownStatus:
    """A status value the client does not understand, kept verbatim."""

    raw: str

    @property
    def label(self) -> str:
        return self.raw

    @property
    def code(self) -> int | str:
        # Numeric unknowns stay numeric on the wire
        return int(self.raw) if _is_number(self.raw) else self.raw


StatusValue = KnownStatus | UnknownStatus


def _is_number(text: str) -> bool:
    # isdigit() alone accepts superscripts and circled digits that int() rejects
    return text.isascii() and text.isdigit()


def parse_status(value: object) -> StatusValue:
    """Classify a raw status value from either side of the wire.

    Accepts numeric codes, numeric strings, canonical labels and legacy
    aliases. None (or an empty string) is the canonical queued status.

    Args:
        value: Raw status value.

    Returns:
        KnownStatus or UnknownStatus.
    """
    if value is None or value == "":
        return KnownStatus(DEFAULT_STATUS)
    if isinstance(value, bool):
        return UnknownStatus(str(value))
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, int):
        try:
            return KnownStatus(RepairStatus(value))
        except ValueError:
            return UnknownStatus(str(value))

    text = str(value).strip()
    if _is_number(text):
        try:
            return KnownStatus(RepairStatus(int(text)))
        except ValueError:
            return UnknownStatus(text)
    status = _LABEL_TO_STATUS.get(text)
    if status is not None:
        return KnownStatus(status)
    return UnknownStatus(str(value))


def to_label(value: object) -> str:
    """Translate a remote status value to the local long-form label."""
    return parse_status(value).label


def to_code(label: object) -> int | str:
    """Translate a local status label to the compact remote code.

    Unknown labels pass through unchanged (numeric ones as integers).
    """
    return parse_status(label).code
