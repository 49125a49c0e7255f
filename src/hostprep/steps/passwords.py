# src/hostprep/steps/passwords.py

from __future__ import annotations

import logging
from typing import Callable, Optional

from hostprep.config.models import HostConfig
from hostprep.errors import ConfigError, MissingCollaborator
from hostprep.execution.runner import CommandRunner
from .base import Step

log = logging.getLogger("hostprep")

PasswordPrompt = Callable[[str], str]


class PasswordSet(Step):
    """
    Set an account password from an interactive prompt.

    A password cannot be verified without knowing it, so ``check`` is always
    false and this step runs on every invocation.
    """

    def __init__(self, runner: CommandRunner, account: str, prompt: PasswordPrompt):
        super().__init__(runner)
        self.account = account
        self.prompt = prompt
        self.name = f"set-password:{account}"

    def skip_reason(self, config: HostConfig) -> Optional[str]:
        if not config.set_passwords:
            return "password steps disabled"
        return None

    def check(self, config: HostConfig) -> bool:
        return False

    def apply(self, config: HostConfig) -> None:
        if not self.runner.run(["id", "-u", self.account]).ok:
            raise MissingCollaborator(f"User '{self.account}' does not exist.")

        password = self.prompt(self.account)
        if not password:
            raise ConfigError(f"Empty password for '{self.account}'")
        if ":" in self.account or "\n" in password:
            raise ConfigError(f"Cannot pass password for '{self.account}' to chpasswd")

        log.info("Setting password for %s...", self.account)
        self.runner.run(["chpasswd"], input=f"{self.account}:{password}\n").check()
