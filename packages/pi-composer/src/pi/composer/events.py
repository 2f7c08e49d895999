"""Events exchanged between the composer and its host."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from pi.composer.errors import ComposerError


@dataclass(frozen=True)
class Session:
    """Reference to a conversation owned by the host's session store."""

    id: str
    title: str = ""


class BusyChecker(Protocol):
    """Answers whether a background task currently owns a session.

    Queried on every send; implementations must not cache.
    """

    def is_session_busy(self, session_id: str) -> bool: ...


# ============================================================================
# Inbound (host -> composer)
# ============================================================================


@dataclass(frozen=True)
class SessionSelectedEvent:
    session: Session


@dataclass(frozen=True)
class FocusRequestEvent:
    focused: bool = True


InboundEvent = SessionSelectedEvent | FocusRequestEvent


# ============================================================================
# Outbound (composer -> host)
# ============================================================================


@dataclass(frozen=True)
class SubmitEvent:
    text: str


@dataclass(frozen=True)
class FocusChangedEvent:
    focused: bool


@dataclass(frozen=True)
class WarningEvent:
    message: str


@dataclass(frozen=True)
class ErrorEvent:
    error: ComposerError

    @property
    def message(self) -> str:
        return self.error.user_message()


ComposerEvent = SubmitEvent | FocusChangedEvent | WarningEvent | ErrorEvent

ComposerListener = Callable[[ComposerEvent], None]


class EventEmitter:
    """Fan-out of composer events to subscribed listeners."""

    def __init__(self) -> None:
        self._listeners: list[ComposerListener] = []

    def subscribe(self, fn: ComposerListener) -> Callable[[], None]:
        """Subscribe to events. Returns an unsubscribe function."""
        self._listeners.append(fn)

        def unsubscribe() -> None:
            if fn in self._listeners:
                self._listeners.remove(fn)

        return unsubscribe

    def emit(self, event: ComposerEvent) -> None:
        for listener in list(self._listeners):
            listener(event)
