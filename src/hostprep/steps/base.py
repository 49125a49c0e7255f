# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/hostprep/steps/base.py

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from hostprep.config.models import HostConfig
from hostprep.errors import MissingCollaborator
from hostprep.execution.runner import CommandRunner


class Step(ABC):
    """
    One idempotent provisioning action.

    ``check`` must not change the host. ``apply`` must be safe to call when
    ``check`` is already true. ``skip_reason`` names an accepted alternate
    state (nothing configured, optional tool absent) in which the step does
    nothing at all.
    """

    name: str = "step"

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.name}>"

    def skip_reason(self, config: HostConfig) -> Optional[str]:
        return None

    @abstractmethod
    def check(self, config: HostConfig) -> bool:
        ...

    @abstractmethod
    def apply(self, config: HostConfig) -> None:
        ...


# ------------------ host file helpers ------------------
# All filesystem access goes through the runner so steps behave the same
# on the local machine and over SSH.

@dataclass(frozen=True)
class FileStat:
    mode: int
    owner: str
    group: str


@dataclass(frozen=True)
class Account:
    name: str
    home: str
    group: str


def lookup_account(runner: CommandRunner, user: str) -> Account:
    """
    Resolve home directory and primary group, or raise MissingCollaborator.
    """
    r = runner.run(["getent", "passwd", user])
    if not r.ok or not r.stdout.strip():
        raise MissingCollaborator(f"User '{user}' does not exist.")
    # name:passwd:uid:gid:gecos:home:shell
    fields = r.stdout.strip().splitlines()[0].split(":")
    if len(fields) < 7:
        raise MissingCollaborator(f"Unexpected passwd entry for '{user}': {r.stdout.strip()!r}")
    group = runner.run(["id", "-gn", user]).check().stdout.strip()
    return Account(name=user, home=fields[5], group=group)


def read_file(runner: CommandRunner, path: str) -> Optional[str]:
    r = runner.run(["cat", path])
    return r.stdout if r.ok else None


def stat_file(runner: CommandRunner, path: str) -> Optional[FileStat]:
    r = runner.run(["stat", "-c", "%a:%U:%G", path])
    if not r.ok:
        return None
    mode, owner, group = r.stdout.strip().split(":", 2)
    return FileStat(mode=int(mode, 8), owner=owner, group=group)


def ensure_dir(runner: CommandRunner, path: str, *, mode: int, owner: str, group: str) -> None:
    runner.run(["install", "-d", "-m", f"{mode:o}", "-o", owner, "-g", group, path]).check()


def write_file(
    runner: CommandRunner,
    path: str,
    content: str,
    *,
    mode: int,
    owner: str = "root",
    group: str = "root",
) -> None:
    """
    Write content, mode and ownership in one step via install(1).
    """
    runner.run(
        ["install", "-m", f"{mode:o}", "-o", owner, "-g", group, "/dev/stdin", path],
        input=content,
    ).check()


def file_matches(
    runner: CommandRunner,
    path: str,
    content: str,
    *,
    mode: int,
    owner: str,
) -> bool:
    st = stat_file(runner, path)
    if st is None or st.mode != mode or st.owner != owner:
        return False
    return read_file(runner, path) == content
