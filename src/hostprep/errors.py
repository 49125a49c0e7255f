# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/hostprep/errors.py
from __future__ import annotations

from typing import Optional, Sequence


class ProvisionError(RuntimeError):
    """Base class for everything that stops a provisioning run."""


class PrivilegeError(ProvisionError):
    """Not running with enough privilege on the target host."""


class ConfigError(ProvisionError):
    """Run parameters are missing or invalid."""


class LookupAmbiguity(ConfigError):
    """No network connection profile could be resolved for an interface."""


class MissingCollaborator(ProvisionError):
    """A required account or tool is absent from the target host."""


class CommandFailure(ProvisionError):
    """An external command exited nonzero where success was required."""

    def __init__(
        self,
        argv: Sequence[str],
        returncode: int,
        stdout: str = "",
        stderr: str = "",
        message: Optional[str] = None,
    ):
        self.argv = tuple(argv)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(
            message
            or f"'{' '.join(self.argv)}' exited with {returncode}: {self.output or '<no output>'}"
        )

    @property
    def output(self) -> str:
        return "\n".join(s.rstrip() for s in (self.stderr, self.stdout) if s and s.strip())
