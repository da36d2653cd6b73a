# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Dataclass exports for captivecheck."""

from .events import (
    NetworkConditionsMeasured,
    NetworkEvent,
    NetworkEventKind,
    Outcome,
    ShowSignInPrompt,
    ValidationProbeEvent,
    ValidationResult,
    ValidationStage,
    event_to_dict,
)
from .messages import (
    ForceReevaluate,
    LaunchSignIn,
    Message,
    NetworkConnected,
    NetworkDisconnected,
    PeriodicRecheck,
    ProbeCompleted,
    Reevaluate,
    UserVerdict,
    Verdict,
)
from .network import Network
from .probe import FAILED_CODE, SUCCESS_CODE, ProbeResult, ProbeType, ProbeVerdict, classify_status
from .session import MonitorState, SignInSession, ValidationSession

__all__ = [
    "FAILED_CODE",
    "ForceReevaluate",
    "LaunchSignIn",
    "Message",
    "MonitorState",
    "Network",
    "NetworkConditionsMeasured",
    "NetworkConnected",
    "NetworkDisconnected",
    "NetworkEvent",
    "NetworkEventKind",
    "Outcome",
    "PeriodicRecheck",
    "ProbeCompleted",
    "ProbeResult",
    "ProbeType",
    "ProbeVerdict",
    "Reevaluate",
    "SUCCESS_CODE",
    "ShowSignInPrompt",
    "SignInSession",
    "UserVerdict",
    "ValidationProbeEvent",
    "ValidationResult",
    "ValidationSession",
    "ValidationStage",
    "Verdict",
    "classify_status",
    "event_to_dict",
]
