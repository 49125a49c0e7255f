from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import pytest

from hostprep.config.models import HostConfig
from hostprep.execution.runner import CommandResult, CommandRunner


# ----------------- In-memory Debian host -----------------

@dataclass
class FakeFile:
    content: str
    mode: int
    owner: str
    group: str


class FakeHost(CommandRunner):
    """
    Simulates just enough of dpkg, apt, systemd, coreutils, ufw and nmcli
    for the steps to run against it.
    """

    label = "fake"

    def __init__(self):
        self.root = True
        self.users: Dict[str, Tuple[str, str]] = {
            "root": ("/root", "root"),
            "bgi": ("/home/bgi", "bgi"),
        }
        self.tools = {"sh", "visudo", "nmcli"}
        self.packages = set()
        self.services: Dict[str, Dict[str, bool]] = {}
        self.files: Dict[str, FakeFile] = {}
        self.dirs: Dict[str, FakeFile] = {"/etc/sudoers.d": FakeFile("", 0o750, "root", "root")}
        self.passwords: Dict[str, str] = {}
        self.ufw_active = True
        self.ufw_rules: List[str] = []
        self.nm_active: List[str] = ["wifi-home:wlan0", "wired:eth0"]
        self.nm_settings: Dict[str, Dict[str, str]] = {}
        self.failures: Dict[Tuple[str, ...], Tuple[int, str, str]] = {}
        self.calls: List[Tuple[str, ...]] = []
        self.writes: List[str] = []

    # -- test helpers --

    def fail(self, *prefix: str, rc: int = 1, stdout: str = "", stderr: str = "boom") -> None:
        self.failures[tuple(prefix)] = (rc, stdout, stderr)

    def ran(self, *prefix: str) -> bool:
        return any(c[: len(prefix)] == prefix for c in self.calls)

    def index_of(self, *prefix: str) -> int:
        for i, c in enumerate(self.calls):
            if c[: len(prefix)] == prefix:
                return i
        raise AssertionError(f"{prefix} never ran")

    # -- runner --

    def run(self, cmd, *, input: Optional[str] = None) -> CommandResult:
        argv = tuple(str(c) for c in cmd)
        self.calls.append(argv)
        for prefix, (rc, out, err) in self.failures.items():
            if argv[: len(prefix)] == prefix:
                return CommandResult(argv, rc, out, err)

        args = list(argv)
        if args[0] == "env":
            args = [a for a in args[1:] if "=" not in a]
        handler = getattr(self, "_" + args[0].replace("-", "_"), None)
        if handler is None or (args[0] not in self.tools and args[0] in ("ufw", "visudo", "nmcli")):
            return CommandResult(argv, 127, "", f"{args[0]}: command not found")
        rc, out, err = handler(args[1:], input)
        return CommandResult(argv, rc, out, err)

    def _ok(self, out=""):
        return 0, out, ""

    def _sh(self, args, _):
        tool = args[1].split()[-1]
        return (0, f"/usr/bin/{tool}\n", "") if tool in self.tools else (1, "", "")

    def _id(self, args, _):
        if args == ["-u"]:
            return self._ok("0\n" if self.root else "1000\n")
        user = args[-1]
        if user not in self.users:
            return 1, "", f"id: '{user}': no such user"
        if args[0] == "-gn":
            return self._ok(self.users[user][1] + "\n")
        return self._ok("1000\n")

    def _getent(self, args, _):
        user = args[1]
        if user not in self.users:
            return 2, "", ""
        home, _group = self.users[user]
        return self._ok(f"{user}:x:1000:1000::{home}:/bin/bash\n")

    def _dpkg_query(self, args, _):
        pkg = args[-1]
        if pkg in self.packages:
            return self._ok("install ok installed")
        return 1, "", f"dpkg-query: no packages found matching {pkg}"

    def _apt_get(self, args, _):
        if args[0] == "install":
            self.packages.update(a for a in args[1:] if not a.startswith("-"))
        return self._ok()

    def _systemctl(self, args, _):
        action, svc = args[0], args[-1]
        state = self.services.setdefault(svc, {"enabled": False, "active": False})
        if action == "is-enabled":
            return (0 if state["enabled"] else 1), "", ""
        if action == "is-active":
            return (0 if state["active"] else 3), "", ""
        if action == "enable":
            state["enabled"] = True
        elif action == "start":
            state["active"] = True
        return self._ok()

    def _chpasswd(self, args, data):
        user, pw = data.rstrip("\n").split(":", 1)
        self.passwords[user] = pw
        return self._ok()

    def _cat(self, args, _):
        f = self.files.get(args[0])
        if f is None:
            return 1, "", f"cat: {args[0]}: No such file or directory"
        return self._ok(f.content)

    def _stat(self, args, _):
        path = args[-1]
        f = self.files.get(path) or self.dirs.get(path)
        if f is None:
            return 1, "", f"stat: cannot statx '{path}'"
        return self._ok(f"{f.mode:o}:{f.owner}:{f.group}\n")

    def _install(self, args, data):
        is_dir = args[0] == "-d"
        if is_dir:
            args = args[1:]
        opts = dict(zip(args[0:6:2], args[1:6:2]))
        mode, owner, group = int(opts["-m"], 8), opts["-o"], opts["-g"]
        target = args[-1]
        self.writes.append(target)
        if is_dir:
            self.dirs[target] = FakeFile("", mode, owner, group)
        else:
            self.files[target] = FakeFile(data or "", mode, owner, group)
        return self._ok()

    def _mkdir(self, args, _):
        self.dirs.setdefault(args[-1], FakeFile("", 0o755, "root", "root"))
        self.writes.append(args[-1])
        return self._ok()

    def _rm(self, args, _):
        self.files.pop(args[-1], None)
        return self._ok()

    def _visudo(self, args, _):
        return self._ok(f"{args[-1]}: parsed OK\n")

    def _ufw(self, args, _):
        if args[0] == "status":
            if not self.ufw_active:
                return self._ok("Status: inactive\n")
            rows = "".join(f"{r:<27}ALLOW       Anywhere\n" for r in self.ufw_rules)
            return self._ok(f"Status: active\n\nTo                         Action      From\n"
                            f"--                         ------      ----\n{rows}")
        if args[0] == "allow" and args[1] not in self.ufw_rules:
            self.ufw_rules.append(args[1])
        return self._ok()

    def _nmcli(self, args, _):
        if args[:2] == ["-t", "-f"]:
            return self._ok("".join(line + "\n" for line in self.nm_active))
        if args[:2] == ["-t", "-g"]:
            s = self.nm_settings.get(args[-1], {})
            keys = args[2].split(",")
            return self._ok("".join(s.get(k, "") + "\n" for k in keys))
        action, conn = args[1], args[2]
        if action == "modify":
            settings = self.nm_settings.setdefault(conn, {"ipv4.method": "auto"})
            rest = args[3:]
            settings.update(dict(zip(rest[0::2], rest[1::2])))
            if "ipv4.addresses" in settings:
                settings["ipv4.addresses"] = settings["ipv4.addresses"].replace(",", ", ")
        return self._ok()


@pytest.fixture
def host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def config() -> HostConfig:
    return HostConfig(
        ssh_user="bgi",
        ssh_pub_key="ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIFakeKeyFakeKeyFakeKey admin@laptop",
        interface="wlan0",
        fixed_ip="192.168.1.211/24",
        gateway="192.168.1.1",
        dns_servers="8.8.8.8,8.8.4.4",
    )
