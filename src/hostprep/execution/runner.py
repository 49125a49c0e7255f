# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

from hostprep.errors import CommandFailure

log = logging.getLogger("hostprep")

Cmd = Sequence[Union[str, "os.PathLike[str]"]]

# shell convention for "command not found"
EXIT_NOT_FOUND = 127


@dataclass(frozen=True)
class CommandResult:
    argv: Tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def check(self) -> "CommandResult":
        if not self.ok:
            raise CommandFailure(self.argv, self.returncode, self.stdout, self.stderr)
        return self


class CommandRunner(ABC):
    """
    Executes commands on the host being provisioned.

    Nonzero exit is returned, not raised; callers decide whether it was expected.
    """

    label: str = "cmd"

    @abstractmethod
    def run(self, cmd: Cmd, *, input: Optional[str] = None) -> CommandResult:
        ...

    def exists(self, tool: str) -> bool:
        return self.run(["sh", "-c", f"command -v {shlex.quote(tool)}"]).ok

    def _log_result(self, result: CommandResult, duration: float) -> None:
        if result.stdout:
            log.debug("[%s][stdout]\n%s", self.label, result.stdout.rstrip())
        if result.stderr:
            log.debug("[%s][stderr]\n%s", self.label, result.stderr.rstrip())
        log.debug("[%s][exit %d] (%.2fs)", self.label, result.returncode, duration)


@dataclass
class LocalRunner(CommandRunner):
    label: str = "local"
    timeout: Optional[float] = None

    def run(self, cmd: Cmd, *, input: Optional[str] = None) -> CommandResult:
        argv = [str(c) for c in cmd]
        log.debug("[%s] $ %s", self.label, shlex.join(argv))

        start = time.time()
        try:
            cp = subprocess.run(
                argv,
                input=input,
                capture_output=True,
                text=True,
                check=False,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            result = CommandResult(tuple(argv), EXIT_NOT_FOUND, "", str(e))
        else:
            result = CommandResult(tuple(argv), cp.returncode, cp.stdout or "", cp.stderr or "")

        self._log_result(result, time.time() - start)
        return result
