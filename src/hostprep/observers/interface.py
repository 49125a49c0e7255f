# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations
from typing import Protocol
from .events import BaseEvent


class Observer(Protocol):
    """Anything that wants to hear about provisioning lifecycle events."""

    def notify(self, event: BaseEvent) -> None: ...
