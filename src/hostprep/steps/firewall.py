from __future__ import annotations

import logging
from typing import Optional

from hostprep.config.models import HostConfig
from hostprep.execution.runner import CommandRunner
from .base import Step

log = logging.getLogger("hostprep")


class FirewallOpen(Step):
    """Allow the SSH port through UFW, when UFW is installed and active."""

    def __init__(self, runner: CommandRunner, port: int):
        super().__init__(runner)
        self.port = port
        self.rule = f"{port}/tcp"
        self.name = f"open-firewall:{self.rule}"

    def _status(self) -> str:
        return self.runner.run(["ufw", "status"]).check().stdout

    def skip_reason(self, config: HostConfig) -> Optional[str]:
        if not self.runner.exists("ufw"):
            return "ufw not installed"
        first = self._status().strip().splitlines()[:1]
        if first != ["Status: active"]:
            return "ufw inactive"
        return None

    def check(self, config: HostConfig) -> bool:
        for line in self._status().splitlines():
            parts = line.split()
            if len(parts) >= 2 and parts[0] in (self.rule, str(self.port)) and parts[1] == "ALLOW":
                return True
        return False

    def apply(self, config: HostConfig) -> None:
        log.info("Allowing SSH port %s in UFW...", self.rule)
        self.runner.run(["ufw", "allow", self.rule]).check()
        self.runner.run(["ufw", "reload"]).check()
