"""Compose a message in an external editor.

The launcher writes nothing itself: it creates an empty scratch file, asks
the host to run ``$EDITOR <file>`` with exclusive use of the terminal, reads
the file back on a clean exit and removes it on every path.
"""

from __future__ import annotations

import logging
import os
import shlex
import tempfile
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from pi.composer.config import ComposerSettings
from pi.composer.errors import (
    ComposerError,
    ExternalEditorError,
    ScratchCreationError,
    ScratchReadError,
)

logger = logging.getLogger(__name__)


class ExternalProcessRunner(Protocol):
    """Host capability: run a program that owns the terminal until it exits.

    Implementations stop drawing and reading input, run *argv* with the
    terminal's stdin/stdout/stderr, restore the terminal and return the exit
    code.  Spawn failures raise ``OSError``.
    """

    async def run_external(self, argv: Sequence[str]) -> int: ...


@dataclass
class LaunchOutcome:
    """Either the text the user wrote or the error that prevented it."""

    text: str | None = None
    error: ComposerError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ExternalEditorLauncher:
    def __init__(self, runner: ExternalProcessRunner, settings: ComposerSettings | None = None) -> None:
        self.runner = runner
        self.settings = settings or ComposerSettings()

    def command(self, path: str) -> list[str]:
        """argv for editing *path*; ``$EDITOR`` may carry its own flags."""
        editor = self.settings.editor_command()
        try:
            parts = shlex.split(editor)
        except ValueError:
            parts = [editor]
        return [*parts, path]

    def create_scratch_file(self) -> str:
        try:
            fd, path = tempfile.mkstemp(
                prefix=self.settings.scratch_prefix,
                suffix=self.settings.scratch_suffix,
                dir=self.settings.scratch_dir,
            )
        except OSError as e:
            raise ScratchCreationError(e) from e
        os.close(fd)
        return path

    async def launch(self) -> LaunchOutcome:
        """Run the editor on a fresh scratch file and return what was written."""
        try:
            path = self.create_scratch_file()
        except ScratchCreationError as e:
            logger.warning("%s", e.message)
            return LaunchOutcome(error=e)

        try:
            return await self._edit(path)
        finally:
            _remove_scratch_file(path)

    async def _edit(self, path: str) -> LaunchOutcome:
        argv = self.command(path)
        program = argv[0]
        logger.debug("Launching %s on %s", program, path)
        try:
            returncode = await self.runner.run_external(argv)
        except OSError as e:
            error = ExternalEditorError(program, cause=e)
            logger.warning("%s", error.message)
            return LaunchOutcome(error=error)
        except Exception as e:
            logger.exception("Editor hand-off failed")
            return LaunchOutcome(error=ExternalEditorError(program, cause=e))

        if returncode != 0:
            error = ExternalEditorError(program, returncode=returncode)
            logger.warning("%s", error.message)
            return LaunchOutcome(error=error)

        try:
            with open(path, encoding="utf-8") as f:
                text = f.read()
        except (OSError, UnicodeDecodeError) as e:
            error = ScratchReadError(path, e)
            logger.warning("%s", error.message)
            return LaunchOutcome(error=error)
        return LaunchOutcome(text=text)


def _remove_scratch_file(path: str) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Could not remove scratch file %s: %s", path, e)
