# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
import posixpath
from typing import Optional

from hostprep.config.models import HostConfig
from hostprep.execution.runner import CommandRunner
from .base import Step, ensure_dir, file_matches, lookup_account, stat_file, write_file

log = logging.getLogger("hostprep")

SSH_DIR_MODE = 0o700
AUTHORIZED_KEYS_MODE = 0o600


class SshKeyInstall(Step):
    """
    ~user/.ssh/authorized_keys holds exactly the configured public key.
    """

    def __init__(self, runner: CommandRunner, user: str):
        super().__init__(runner)
        self.user = user
        self.name = f"install-ssh-key:{user}"

    def skip_reason(self, config: HostConfig) -> Optional[str]:
        if not config.ssh_pub_key:
            return "no public SSH key configured"
        return None

    def _paths(self):
        account = lookup_account(self.runner, self.user)
        ssh_dir = posixpath.join(account.home, ".ssh")
        return account, ssh_dir, posixpath.join(ssh_dir, "authorized_keys")

    def check(self, config: HostConfig) -> bool:
        _, ssh_dir, keys = self._paths()
        st = stat_file(self.runner, ssh_dir)
        if st is None or st.mode != SSH_DIR_MODE or st.owner != self.user:
            return False
        return file_matches(
            self.runner, keys, config.ssh_pub_key + "\n",
            mode=AUTHORIZED_KEYS_MODE, owner=self.user,
        )

    def apply(self, config: HostConfig) -> None:
        account, ssh_dir, keys = self._paths()
        log.info("Adding public key to %s...", keys)
        ensure_dir(self.runner, ssh_dir, mode=SSH_DIR_MODE, owner=account.name, group=account.group)
        write_file(
            self.runner, keys, config.ssh_pub_key + "\n",
            mode=AUTHORIZED_KEYS_MODE, owner=account.name, group=account.group,
        )
