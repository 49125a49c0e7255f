from __future__ import annotations

import logging

from hostprep.config.models import HostConfig
from hostprep.execution.runner import CommandRunner
from .base import Step

log = logging.getLogger("hostprep")


class ServiceEnable(Step):
    """Service both enabled at boot and currently active."""

    def __init__(self, runner: CommandRunner, service: str):
        super().__init__(runner)
        self.service = service
        self.name = f"enable-service:{service}"

    def _enabled(self) -> bool:
        return self.runner.run(["systemctl", "is-enabled", "--quiet", self.service]).ok

    def _active(self) -> bool:
        return self.runner.run(["systemctl", "is-active", "--quiet", self.service]).ok

    def check(self, config: HostConfig) -> bool:
        return self._enabled() and self._active()

    def apply(self, config: HostConfig) -> None:
        log.info("Enabling and starting %s service...", self.service)
        self.runner.run(["systemctl", "enable", self.service]).check()
        self.runner.run(["systemctl", "start", self.service]).check()
