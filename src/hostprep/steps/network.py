# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/hostprep/steps/network.py

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Tuple

from hostprep.config.models import HostConfig
from hostprep.errors import LookupAmbiguity
from hostprep.execution.runner import CommandRunner
from .base import Step

log = logging.getLogger("hostprep")


def split_terse(line: str) -> List[str]:
    """
    Split one line of ``nmcli -t`` output into fields.

    nmcli escapes ':' and '\\' inside values with a backslash.

    >>> split_terse(r"Cafe\\: Guest:wlan0")
    ['Cafe: Guest', 'wlan0']
    """
    fields: List[str] = []
    buf: List[str] = []
    chars = iter(line)
    for ch in chars:
        if ch == "\\":
            buf.append(next(chars, "\\"))
        elif ch == ":":
            fields.append("".join(buf))
            buf = []
        else:
            buf.append(ch)
    fields.append("".join(buf))
    return fields


def parse_active_connections(lines: Iterable[str]) -> List[Tuple[str, str]]:
    pairs = []
    for line in lines:
        if not line.strip():
            continue
        fields = split_terse(line.rstrip("\n"))
        if len(fields) >= 2:
            pairs.append((fields[0], fields[1]))
    return pairs


def select_connection(lines: Iterable[str], interface: str) -> str:
    """
    First active connection bound to exactly ``interface``, in listing order.
    """
    for name, device in parse_active_connections(lines):
        if device == interface:
            return name
    raise LookupAmbiguity(
        f"No active NetworkManager connection found for {interface}; "
        f"fix the network manually and re-run."
    )


def _values(raw: str) -> List[str]:
    return [v.strip() for v in raw.split(",") if v.strip()]


class StaticIPConfigure(Step):
    """
    Manual IPv4 addressing on the connection profile bound to an interface.

    Runs last: bringing the profile down and up can drop connectivity.
    """

    def __init__(self, runner: CommandRunner, interface: str):
        super().__init__(runner)
        self.interface = interface
        self.name = f"configure-static-ip:{interface}"

    def skip_reason(self, config: HostConfig) -> Optional[str]:
        if not config.static_ip_requested:
            return "no static IP configured"
        return None

    def connection(self) -> str:
        r = self.runner.run(
            ["nmcli", "-t", "-f", "NAME,DEVICE", "connection", "show", "--active"]
        ).check()
        return select_connection(r.stdout.splitlines(), self.interface)

    def check(self, config: HostConfig) -> bool:
        conn = self.connection()
        r = self.runner.run(
            ["nmcli", "-t", "-g", "ipv4.method,ipv4.addresses,ipv4.gateway,ipv4.dns",
             "connection", "show", conn]
        ).check()
        lines = r.stdout.splitlines() + [""] * 4
        method, addresses, gateway, dns = (l.strip() for l in lines[:4])

        if method != "manual":
            return False
        if _values(addresses) != [str(config.fixed_ip)]:
            return False
        if config.gateway is not None and gateway != str(config.gateway):
            return False
        if config.dns_servers and _values(dns) != [str(d) for d in config.dns_servers]:
            return False
        return True

    def apply(self, config: HostConfig) -> None:
        conn = self.connection()

        settings = ["ipv4.addresses", str(config.fixed_ip)]
        if config.gateway is not None:
            settings += ["ipv4.gateway", str(config.gateway)]
        if config.dns_servers:
            settings += ["ipv4.dns", config.dns_csv]
        settings += ["ipv4.method", "manual"]

        log.info("Modifying NM connection '%s' to use static IP %s...", conn, config.fixed_ip)
        self.runner.run(["nmcli", "connection", "modify", conn, *settings]).check()

        log.info("Bringing connection '%s' down/up...", conn)
        self.runner.run(["nmcli", "connection", "down", conn]).check()
        self.runner.run(["nmcli", "connection", "up", conn]).check()
