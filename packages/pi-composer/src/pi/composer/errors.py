"""Errors the composer recovers from and reports to its host."""

from __future__ import annotations


class ComposerError(Exception):
    """Base class for composer failures shown to the user as notifications."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def user_message(self) -> str:
        return self.message


class ScratchCreationError(ComposerError):
    """The scratch file for the external editor could not be created."""

    def __init__(self, cause: OSError) -> None:
        super().__init__(f"Could not create scratch file: {cause.strerror or cause}")
        self.cause = cause


class ExternalEditorError(ComposerError):
    """The external editor could not be started or exited with an error."""

    def __init__(self, program: str, returncode: int | None = None, cause: BaseException | None = None) -> None:
        if returncode is not None:
            message = f"Editor {program!r} exited with status {returncode}"
        elif isinstance(cause, OSError):
            message = f"Could not start editor {program!r}: {cause.strerror or cause}"
        else:
            message = f"Editor {program!r} failed: {cause}"
        super().__init__(message)
        self.program = program
        self.returncode = returncode
        self.cause = cause


class ScratchReadError(ComposerError):
    """The scratch file could not be read back after the editor exited."""

    def __init__(self, path: str, cause: Exception) -> None:
        super().__init__(f"Could not read {path}: {cause}")
        self.path = path
        self.cause = cause


class SessionBusyWarning(ComposerError):
    """Input was refused because the session's agent is still working.

    Not a fault: the host shows it as a transient warning.
    """

    def __init__(self, session_id: str = "") -> None:
        super().__init__("Agent is working, please wait...")
        self.session_id = session_id
