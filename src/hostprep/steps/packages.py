# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
from typing import List, Sequence

from hostprep.config.models import HostConfig
from hostprep.execution.runner import CommandRunner
from .base import Step

log = logging.getLogger("hostprep")

APT_ENV = ["env", "DEBIAN_FRONTEND=noninteractive"]


class PackageInstall(Step):
    """Install packages through apt when dpkg does not report them installed."""

    def __init__(self, runner: CommandRunner, packages: Sequence[str]):
        super().__init__(runner)
        self.packages = list(packages)
        self.name = "install-packages"

    def _installed(self, package: str) -> bool:
        r = self.runner.run(["dpkg-query", "-W", "-f=${Status}", package])
        return r.ok and r.stdout.strip() == "install ok installed"

    def missing(self) -> List[str]:
        return [p for p in self.packages if not self._installed(p)]

    def check(self, config: HostConfig) -> bool:
        return not self.missing()

    def apply(self, config: HostConfig) -> None:
        missing = self.missing()
        if not missing:
            return
        log.info("Installing %s...", ", ".join(missing))
        self.runner.run([*APT_ENV, "apt-get", "update"]).check()
        self.runner.run(
            [*APT_ENV, "apt-get", "install", "-y", "--no-install-recommends", *missing]
        ).check()
