# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Events emitted to the caller and to the metrics sink."""

from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any

from ..errors import ErrorCategory
from .probe import ProbeType


class Outcome(str, Enum):
    VALID = "VALID"
    INVALID = "INVALID"


class ValidationStage(str, Enum):
    FIRST_VALIDATION = "FIRST_VALIDATION"
    REVALIDATION = "REVALIDATION"

    @property
    def is_first_validation(self) -> bool:
        return self is ValidationStage.FIRST_VALIDATION


class NetworkEventKind(str, Enum):
    NETWORK_CONNECTED = "NETWORK_CONNECTED"
    NETWORK_DISCONNECTED = "NETWORK_DISCONNECTED"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    FIRST_VALIDATION_SUCCESS = "FIRST_VALIDATION_SUCCESS"
    REVALIDATION_SUCCESS = "REVALIDATION_SUCCESS"
    FIRST_VALIDATION_PORTAL_FOUND = "FIRST_VALIDATION_PORTAL_FOUND"
    REVALIDATION_PORTAL_FOUND = "REVALIDATION_PORTAL_FOUND"

    @classmethod
    def evaluation_result(cls, stage: ValidationStage, validated: bool) -> NetworkEventKind:
        if stage.is_first_validation:
            return cls.FIRST_VALIDATION_SUCCESS if validated else cls.FIRST_VALIDATION_PORTAL_FOUND
        return cls.REVALIDATION_SUCCESS if validated else cls.REVALIDATION_PORTAL_FOUND


@dataclass(frozen=True)
class ValidationResult:
    """Caller-facing verdict for a network."""

    network_id: int
    outcome: Outcome
    redirect_url: str | None = None


@dataclass(frozen=True)
class ShowSignInPrompt:
    """Ask the UI layer to show or hide the "sign in to network" prompt."""

    network_id: int
    visible: bool
    launch_handle: Any = None


@dataclass(frozen=True)
class NetworkEvent:
    network_id: int
    kind: NetworkEventKind
    duration_ms: int | None = None


@dataclass(frozen=True)
class ValidationProbeEvent:
    network_id: int | None
    probe_type: ProbeType
    return_code: int
    duration_ms: int
    first_validation: bool
    attribution_uid: int | None = None
    error_category: ErrorCategory = ErrorCategory.NONE


@dataclass(frozen=True)
class NetworkConditionsMeasured:
    network_id: int | None
    response_received: bool
    is_captive_portal: bool
    request_timestamp: float
    response_timestamp: float


def event_to_dict(event: Any) -> dict[str, Any]:
    """Flatten an event dataclass for JSON output."""
    data: dict[str, Any] = {"event": type(event).__name__}
    for item in fields(event):
        if item.name == "launch_handle":
            continue
        value = getattr(event, item.name)
        data[item.name] = value.value if isinstance(value, Enum) else value
    return data


__all__ = [
    "NetworkConditionsMeasured",
    "NetworkEvent",
    "NetworkEventKind",
    "Outcome",
    "ShowSignInPrompt",
    "ValidationProbeEvent",
    "ValidationResult",
    "ValidationStage",
    "event_to_dict",
]
