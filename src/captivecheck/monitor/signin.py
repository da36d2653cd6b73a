# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Sign-in flow plumbing between a monitor and the UI layer.

The UI receives a ``LaunchHandle`` with the prompt. Invoking it makes the
monitor build a ``SignInIntent`` for the external sign-in app, which reports the
user's verdict back through the intent's ``SignInResponder``. Both carry the
sign-in session token so stale callbacks are ignored.
"""

from __future__ import annotations

import logging
import webbrowser
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from ..models.messages import LaunchSignIn, Message, UserVerdict, Verdict

logger = logging.getLogger(__name__)

Post = Callable[[Message], None]


class LaunchHandle:
    """Given to the UI with the prompt; ``launch()`` starts the sign-in flow."""

    def __init__(self, post: Post, token: int):
        self._post = post
        self.token = token

    def launch(self) -> None:
        self._post(LaunchSignIn(self.token))

    def __repr__(self) -> str:
        return f"LaunchHandle(token={self.token})"


class SignInResponder:
    """Handle the sign-in app uses to report how the user left it."""

    def __init__(self, post: Post, token: int):
        self._post = post
        self.token = token

    def respond(self, verdict: Verdict) -> None:
        self._post(UserVerdict(self.token, Verdict(verdict)))

    def dismissed(self) -> None:
        self.respond(Verdict.DISMISSED)

    def wanted_as_is(self) -> None:
        self.respond(Verdict.WANTED_AS_IS)

    def unwanted(self) -> None:
        self.respond(Verdict.UNWANTED)


@dataclass(frozen=True)
class SignInIntent:
    network_id: int
    detect_url: str | None
    user_agent: str | None
    responder: SignInResponder


class SignInLauncher(Protocol):
    def launch(self, intent: SignInIntent) -> None: ...


class LoggingSignInLauncher:
    """Default launcher for headless hosts: only logs the request."""

    def launch(self, intent: SignInIntent) -> None:
        logger.info("Sign-in requested for network %s at %s", intent.network_id, intent.detect_url)


class BrowserSignInLauncher:
    """Opens the portal detection URL in the user's web browser.

    A browser cannot report a verdict; the periodic recheck picks up a
    successful login instead.
    """

    def __init__(self, opener: Callable[[str], bool] | None = None):
        self._opener = opener or webbrowser.open

    def launch(self, intent: SignInIntent) -> None:
        if not intent.detect_url:
            logger.warning("No portal URL to open for network %s", intent.network_id)
            return
        if not self._opener(intent.detect_url):
            logger.warning("Could not open a browser for %s", intent.detect_url)


__all__ = [
    "BrowserSignInLauncher",
    "LaunchHandle",
    "LoggingSignInLauncher",
    "SignInIntent",
    "SignInLauncher",
    "SignInResponder",
]
