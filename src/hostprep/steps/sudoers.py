# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/hostprep/steps/sudoers.py

from __future__ import annotations

import logging
import posixpath

from hostprep.config.models import HostConfig
from hostprep.errors import CommandFailure, MissingCollaborator
from hostprep.execution.runner import CommandRunner
from .base import Step, file_matches, write_file

log = logging.getLogger("hostprep")

SUDOERS_MODE = 0o600


def sudoers_line(user: str) -> str:
    return f"{user} ALL=(ALL) NOPASSWD:ALL\n"


def sudoers_path(sudoers_dir: str, user: str) -> str:
    # sudo ignores drop-in files whose name contains '.' or ends in '~'
    fname = user.replace(".", "_").rstrip("~")
    return posixpath.join(sudoers_dir, fname)


class SudoersGrant(Step):
    """Passwordless sudo through a single-rule drop-in file."""

    def __init__(self, runner: CommandRunner, user: str):
        super().__init__(runner)
        self.user = user
        self.name = f"grant-sudo:{user}"

    def check(self, config: HostConfig) -> bool:
        return file_matches(
            self.runner, sudoers_path(config.sudoers_dir, self.user), sudoers_line(self.user),
            mode=SUDOERS_MODE, owner="root",
        )

    def apply(self, config: HostConfig) -> None:
        if not self.runner.run(["id", "-u", self.user]).ok:
            raise MissingCollaborator(f"User '{self.user}' does not exist.")

        path = sudoers_path(config.sudoers_dir, self.user)
        log.info("Granting passwordless sudo to %s in %s...", self.user, path)
        self.runner.run(["mkdir", "-p", config.sudoers_dir]).check()
        write_file(self.runner, path, sudoers_line(self.user), mode=SUDOERS_MODE)

        if self.runner.exists("visudo"):
            r = self.runner.run(["visudo", "-cf", path])
            if not r.ok:
                # a broken drop-in locks everyone out of sudo
                self.runner.run(["rm", "-f", path]).check()
                raise CommandFailure(r.argv, r.returncode, r.stdout, r.stderr)
