# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/hostprep/execution/ssh_runner.py

from __future__ import annotations

import logging
import shlex
import time
from pathlib import Path
from typing import Optional

import paramiko

from hostprep.execution.runner import Cmd, CommandResult, CommandRunner

log = logging.getLogger("hostprep")


def _load_private_key(key_path: Path) -> paramiko.PKey:
    path = str(key_path)
    try:
        return paramiko.Ed25519Key.from_private_key_file(path)
    except paramiko.ssh_exception.SSHException:
        pass
    try:
        return paramiko.RSAKey.from_private_key_file(path)
    except paramiko.ssh_exception.SSHException:
        return paramiko.ECDSAKey.from_private_key_file(path)


class SSHRunner(CommandRunner):
    """
    Runs commands on a remote host over an established paramiko session.

    Commands are elevated with ``sudo -S`` unless the session is already root.
    The become password goes to stdin only when ``sudo -n true`` fails,
    i.e. when sudo will actually read it.
    """

    def __init__(
        self,
        client: paramiko.SSHClient,
        *,
        sudo: bool = True,
        become_password: Optional[str] = None,
        timeout: Optional[float] = None,
        label: str = "ssh",
    ):
        self.client = client
        self.sudo = sudo
        self.become_password = become_password
        self.timeout = timeout
        self.label = label
        self._password_needed: Optional[bool] = None

    @classmethod
    def connect(
        cls,
        address: str,
        *,
        username: str,
        port: int = 22,
        key_path: Optional[Path] = None,
        become_password: Optional[str] = None,
        connect_timeout: float = 30.0,
    ) -> "SSHRunner":
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        pkey = _load_private_key(key_path) if key_path else None
        client.connect(
            hostname=address,
            port=port,
            username=username,
            pkey=pkey,
            look_for_keys=pkey is None,
            allow_agent=pkey is None,
            timeout=connect_timeout,
        )
        log.info("[%s] connected to %s@%s:%d", address, username, address, port)
        return cls(
            client,
            sudo=username != "root",
            become_password=become_password,
            label=address,
        )

    def run(self, cmd: Cmd, *, input: Optional[str] = None) -> CommandResult:
        argv = [str(c) for c in cmd]
        line = shlex.join(argv)
        if self.sudo:
            line = f"sudo -S -p '' {line}"
        log.debug("[%s] $ %s", self.label, line)

        feed_password = self.sudo and self.become_password is not None and self._sudo_asks_password()

        start = time.time()
        stdin, stdout, stderr = self.client.exec_command(line, timeout=self.timeout)
        if feed_password:
            stdin.write(self.become_password + "\n")
        if input:
            stdin.write(input)
        stdin.flush()
        stdin.channel.shutdown_write()

        out = stdout.read().decode("utf-8", errors="replace")
        err = stderr.read().decode("utf-8", errors="replace")
        rc = stdout.channel.recv_exit_status()

        result = CommandResult(tuple(argv), rc, out, err)
        self._log_result(result, time.time() - start)
        return result

    def _sudo_asks_password(self) -> bool:
        if self._password_needed is None:
            _, stdout, _ = self.client.exec_command("sudo -n true", timeout=self.timeout)
            self._password_needed = stdout.channel.recv_exit_status() != 0
            log.debug("[%s] sudo needs a password: %s", self.label, self._password_needed)
        return self._password_needed

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "SSHRunner":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
