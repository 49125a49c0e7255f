# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/hostprep/provisioner.py

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from hostprep.config.models import HostConfig
from hostprep.errors import CommandFailure, PrivilegeError, ProvisionError
from hostprep.execution.runner import CommandRunner
from hostprep.observers.dispatcher import EventBus
from hostprep.observers.events import (
    new_ctx,
    RunStarted,
    RunFinished,
    StepStarted,
    StepSkipped,
    StepApplied,
    StepFailed,
)
from hostprep.steps.base import Step
from hostprep.steps.firewall import FirewallOpen
from hostprep.steps.network import StaticIPConfigure
from hostprep.steps.packages import PackageInstall
from hostprep.steps.passwords import PasswordPrompt, PasswordSet
from hostprep.steps.services import ServiceEnable
from hostprep.steps.ssh_key import SshKeyInstall
from hostprep.steps.sudoers import SudoersGrant

log = logging.getLogger("hostprep")

ALREADY_SATISFIED = "already satisfied"


class RunState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class StepOutcome(str, Enum):
    SKIPPED = "skipped"
    APPLIED = "applied"
    FAILED = "failed"


@dataclass
class StepResult:
    name: str
    outcome: StepOutcome
    detail: str = ""
    returncode: Optional[int] = None
    output: str = ""


@dataclass
class RunResult:
    state: RunState = RunState.PENDING
    results: List[StepResult] = field(default_factory=list)

    def add(self, result: StepResult) -> None:
        self.results.append(result)

    @property
    def ok(self) -> bool:
        return self.state == RunState.COMPLETED

    @property
    def failure(self) -> Optional[StepResult]:
        for r in self.results:
            if r.outcome == StepOutcome.FAILED:
                return r
        return None

    def count(self, outcome: StepOutcome) -> int:
        return sum(1 for r in self.results if r.outcome == outcome)

    def summary(self) -> str:
        return (
            f"APPLIED={self.count(StepOutcome.APPLIED)} "
            f"SKIPPED={self.count(StepOutcome.SKIPPED)} "
            f"FAILED={self.count(StepOutcome.FAILED)}"
        )


def default_steps(
    config: HostConfig,
    runner: CommandRunner,
    prompt: PasswordPrompt,
) -> List[Step]:
    """
    The provisioning pipeline in dependency order.

    Packages come before their services, accounts and access before the
    firewall, and network reconfiguration last since it may drop the session.
    """
    return [
        PackageInstall(runner, config.packages),
        *(ServiceEnable(runner, s) for s in config.services),
        PasswordSet(runner, config.ssh_user, prompt),
        PasswordSet(runner, "root", prompt),
        SudoersGrant(runner, config.ssh_user),
        SshKeyInstall(runner, config.ssh_user),
        FirewallOpen(runner, config.ssh_port),
        StaticIPConfigure(runner, config.interface),
    ]


class Provisioner:
    """
    Runs Steps in a fixed order against one host, halting on the first failure.

    Pending -> Running -> Completed | Failed. Running again after a failure is
    safe: steps whose effect is already in place are skipped.
    """

    def __init__(
        self,
        config: HostConfig,
        runner: CommandRunner,
        steps: Sequence[Step],
        *,
        bus: Optional[EventBus] = None,
        run_id: Optional[str] = None,
        host: str = "localhost",
    ):
        self.config = config
        self.runner = runner
        self.steps = list(steps)
        self.bus = bus or EventBus()
        self.run_id = run_id
        self.host = host
        self._state = RunState.PENDING

    @property
    def state(self) -> RunState:
        return self._state

    def _ctx(self) -> dict:
        ctx = new_ctx(self.host, self.run_id)
        self.run_id = ctx["run_id"]
        return ctx

    def verify_privilege(self) -> None:
        r = self.runner.run(["id", "-u"])
        if not r.ok or r.stdout.strip() != "0":
            raise PrivilegeError("Must be run as root (sudo).")

    def plan(self) -> List[Tuple[str, str]]:
        """
        Evaluate every step without applying anything.

        Returns (step name, "apply" or the reason it would be skipped).
        """
        self.verify_privilege()
        planned = []
        for step in self.steps:
            reason = step.skip_reason(self.config)
            if reason is None and step.check(self.config):
                reason = ALREADY_SATISFIED
            planned.append((step.name, reason or "apply"))
        return planned

    def _run_step(self, step: Step) -> StepResult:
        reason = step.skip_reason(self.config)
        if reason is None and step.check(self.config):
            reason = ALREADY_SATISFIED
        if reason is not None:
            log.info("[%s] skipped: %s", step.name, reason)
            self.bus.emit(StepSkipped(**self._ctx(), step=step.name, reason=reason))
            return StepResult(step.name, StepOutcome.SKIPPED, reason)

        start = time.time()
        step.apply(self.config)
        duration_ms = int((time.time() - start) * 1000)
        log.info("[%s] applied", step.name)
        self.bus.emit(StepApplied(**self._ctx(), step=step.name, duration_ms=duration_ms))
        return StepResult(step.name, StepOutcome.APPLIED)

    def run(self) -> RunResult:
        self._state = RunState.RUNNING
        result = RunResult(state=self._state)
        try:
            self.verify_privilege()
        except PrivilegeError:
            self._state = result.state = RunState.FAILED
            raise

        names = [s.name for s in self.steps]
        self.bus.emit(RunStarted(**self._ctx(), steps=names))
        log.info("Provisioning %s: %d steps", self.host, len(names))

        try:
            for i, step in enumerate(self.steps, 1):
                self.bus.emit(StepStarted(**self._ctx(), step=step.name, index=i, total=len(names)))
                try:
                    result.add(self._run_step(step))
                except ProvisionError as exc:
                    rc = exc.returncode if isinstance(exc, CommandFailure) else None
                    output = exc.output if isinstance(exc, CommandFailure) else ""
                    log.error("[%s] failed: %s", step.name, exc)
                    self.bus.emit(StepFailed(**self._ctx(), step=step.name, error=str(exc), returncode=rc))
                    result.add(StepResult(step.name, StepOutcome.FAILED, str(exc), rc, output))
                    self._state = RunState.FAILED
                    break
            else:
                self._state = RunState.COMPLETED
        except Exception:
            self._state = RunState.FAILED
            raise
        finally:
            result.state = self._state

        self.bus.emit(RunFinished(
            **self._ctx(),
            state=self._state.value,
            applied=result.count(StepOutcome.APPLIED),
            skipped=result.count(StepOutcome.SKIPPED),
            failed=result.count(StepOutcome.FAILED),
        ))
        log.info("Provisioning %s: %s (%s)", self.host, self._state.value, result.summary())
        return result
