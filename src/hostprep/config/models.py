# src/hostprep/config/models.py

from __future__ import annotations

from ipaddress import IPv4Address, IPv4Interface
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


DEFAULT_DNS_SERVERS = ("8.8.8.8", "8.8.4.4")
DEFAULT_PACKAGES = ("openssh-server", "network-manager")
DEFAULT_SERVICES = ("ssh", "NetworkManager")


def _split_csv(value):
    if isinstance(value, str):
        return tuple(v.strip() for v in value.split(",") if v.strip())
    return value


class HostConfig(BaseModel):
    """
    Run parameters for one provisioning run. Built once, never mutated.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    # account that receives sudo and the SSH key
    ssh_user: str = Field(min_length=1)
    ssh_pub_key: Optional[str] = None
    ssh_port: int = Field(default=22, ge=1, le=65535)

    # static addressing; fixed_ip unset means leave networking alone
    interface: str = "wlp3s0"
    fixed_ip: Optional[IPv4Interface] = None
    gateway: Optional[IPv4Address] = None
    dns_servers: Tuple[IPv4Address, ...] = DEFAULT_DNS_SERVERS

    packages: Tuple[str, ...] = DEFAULT_PACKAGES
    services: Tuple[str, ...] = DEFAULT_SERVICES
    set_passwords: bool = True
    sudoers_dir: str = "/etc/sudoers.d"

    @field_validator("ssh_pub_key", mode="before")
    @classmethod
    def _single_key_line(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        if not v:
            return None
        if "\n" in v:
            raise ValueError("ssh_pub_key must be a single line")
        return v

    @field_validator("fixed_ip", mode="before")
    @classmethod
    def _require_prefix(cls, v):
        if v in (None, ""):
            return None
        if isinstance(v, str) and "/" not in v:
            raise ValueError(f"fixed_ip must be in CIDR form (e.g. 192.168.1.211/24), got {v!r}")
        return v

    @field_validator("gateway", mode="before")
    @classmethod
    def _empty_gateway(cls, v):
        return None if v == "" else v

    @field_validator("dns_servers", "packages", "services", mode="before")
    @classmethod
    def _csv(cls, v):
        return _split_csv(v)

    @property
    def static_ip_requested(self) -> bool:
        return self.fixed_ip is not None

    @property
    def dns_csv(self) -> str:
        return ",".join(str(d) for d in self.dns_servers)
