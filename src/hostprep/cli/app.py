# src/hostprep/cli/app.py
from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional

import typer
import paramiko

from hostprep.config.loader import load_config
from hostprep.config.models import HostConfig
from hostprep.errors import ConfigError, PrivilegeError, ProvisionError
from hostprep.execution.runner import CommandRunner, LocalRunner
from hostprep.execution.ssh_runner import SSHRunner
from hostprep.logging.log import default_log_dir, init_logging
from hostprep.observers.console import ConsoleObserver
from hostprep.observers.dispatcher import EventBus
from hostprep.observers.jsonfile import JsonFileObserver
from hostprep.observers.logger import LoggerObserver
from hostprep.provisioner import Provisioner, default_steps


# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(help="First-boot provisioning for Debian-based hosts")

EXIT_STEP_FAILED = 1
EXIT_CONFIG = 2
EXIT_PRIVILEGE = 3


# ------------------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------------------

def prompt_password(account: str) -> str:
    return typer.prompt(
        f"New password for {account}",
        hide_input=True,
        confirmation_prompt=True,
    )


def _overrides(
    user: Optional[str],
    ssh_port: Optional[int],
    interface: Optional[str],
    fixed_ip: Optional[str],
    gateway: Optional[str],
    dns: Optional[str],
    skip_passwords: bool,
) -> dict:
    overrides = {
        "ssh_user": user,
        "ssh_port": ssh_port,
        "interface": interface,
        "fixed_ip": fixed_ip,
        "gateway": gateway,
        "dns_servers": dns,
    }
    if skip_passwords:
        overrides["set_passwords"] = False
    return overrides


def _read_pub_key(pub_key_file: Path) -> str:
    if not pub_key_file.is_file():
        raise ConfigError(f"Public key file not found: {pub_key_file}")
    return pub_key_file.read_text().strip()


def _load(
    config_file: Optional[Path],
    overrides: dict,
    *,
    pub_key_file: Optional[Path] = None,
    prompt: Callable[[str], str] = typer.prompt,
) -> HostConfig:
    """Build the config; any ConfigError exits with EXIT_CONFIG."""
    try:
        if pub_key_file is not None:
            overrides = {**overrides, "ssh_pub_key": _read_pub_key(pub_key_file)}
        return load_config(config_file, overrides=overrides, prompt=prompt)
    except ConfigError as e:
        typer.secho(f"[ERROR] {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(EXIT_CONFIG)


def make_runner(
    host: Optional[str],
    login_user: str,
    identity: Optional[Path],
    port: int,
) -> CommandRunner:
    if not host:
        return LocalRunner()
    try:
        return SSHRunner.connect(host, username=login_user, port=port, key_path=identity)
    except (paramiko.ssh_exception.SSHException, OSError) as e:
        typer.secho(f"[ERROR] Cannot SSH into {login_user}@{host}: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(EXIT_CONFIG)


def _close(runner: CommandRunner) -> None:
    if isinstance(runner, SSHRunner):
        runner.close()


# ------------------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------------------

@app.command()
def run(
    config_file: Optional[Path] = typer.Option(None, "--config", help="YAML config file"),
    user: Optional[str] = typer.Option(None, "--user", help="Account that gets sudo and the SSH key"),
    pub_key_file: Optional[Path] = typer.Option(None, "--pub-key-file", help="Public key to install"),
    ssh_port: Optional[int] = typer.Option(None, "--ssh-port", help="SSH port to open in UFW"),
    interface: Optional[str] = typer.Option(None, "--interface", help="Interface for static IP"),
    fixed_ip: Optional[str] = typer.Option(None, "--fixed-ip", help="Static IPv4 in CIDR form"),
    gateway: Optional[str] = typer.Option(None, "--gateway"),
    dns: Optional[str] = typer.Option(None, "--dns", help="Comma-separated DNS servers"),
    skip_passwords: bool = typer.Option(False, "--skip-passwords", help="Do not prompt for passwords"),
    host: Optional[str] = typer.Option(None, "--host", help="Provision a remote host over SSH"),
    login_user: str = typer.Option("root", "--login-user", help="SSH login for --host"),
    identity: Optional[Path] = typer.Option(None, "--identity", "-i", help="SSH private key for --host"),
    port: int = typer.Option(22, "--port", help="SSH port for --host"),
    events_file: Optional[Path] = typer.Option(None, "--events-file", help="Write lifecycle events as JSON lines"),
    log_dir: Optional[Path] = typer.Option(None, "--log-dir", help="Directory for run logs"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """
    Provision the host: packages, services, passwords, sudo, SSH key,
    firewall, then static IP.
    """
    overrides = _overrides(user, ssh_port, interface, fixed_ip, gateway, dns, skip_passwords)
    cfg = _load(config_file, overrides, pub_key_file=pub_key_file)

    logger, run_id, log_path = init_logging(base_dir=log_dir, verbose=verbose)
    observers = [
        ConsoleObserver(),
        LoggerObserver(logger),
        JsonFileObserver(events_file or (log_dir or default_log_dir()) / f"{run_id}.jsonl"),
    ]

    runner = make_runner(host, login_user, identity, port)
    try:
        provisioner = Provisioner(
            cfg,
            runner,
            default_steps(cfg, runner, prompt_password),
            bus=EventBus(observers=observers),
            run_id=run_id,
            host=host or "localhost",
        )
        try:
            result = provisioner.run()
        except PrivilegeError as e:
            typer.secho(f"[ERROR] {e}", fg=typer.colors.RED, err=True)
            raise typer.Exit(EXIT_PRIVILEGE)
    finally:
        _close(runner)

    failure = result.failure
    if failure is not None:
        rc = "" if failure.returncode is None else f" (exit {failure.returncode})"
        typer.secho(f"[ERROR] Step '{failure.name}' failed{rc}: {failure.detail}", fg=typer.colors.RED, err=True)
        typer.echo(f"Log: {log_path}", err=True)
        raise typer.Exit(EXIT_STEP_FAILED)

    typer.echo(f"All done! {result.summary()}")


@app.command()
def plan(
    config_file: Optional[Path] = typer.Option(None, "--config", help="YAML config file"),
    user: Optional[str] = typer.Option(None, "--user"),
    pub_key_file: Optional[Path] = typer.Option(None, "--pub-key-file"),
    ssh_port: Optional[int] = typer.Option(None, "--ssh-port"),
    interface: Optional[str] = typer.Option(None, "--interface"),
    fixed_ip: Optional[str] = typer.Option(None, "--fixed-ip"),
    gateway: Optional[str] = typer.Option(None, "--gateway"),
    dns: Optional[str] = typer.Option(None, "--dns"),
    skip_passwords: bool = typer.Option(False, "--skip-passwords"),
    host: Optional[str] = typer.Option(None, "--host"),
    login_user: str = typer.Option("root", "--login-user"),
    identity: Optional[Path] = typer.Option(None, "--identity", "-i"),
    port: int = typer.Option(22, "--port"),
    log_dir: Optional[Path] = typer.Option(None, "--log-dir", help="Directory for run logs"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """
    Show which steps would apply, without changing anything.
    """
    overrides = _overrides(user, ssh_port, interface, fixed_ip, gateway, dns, skip_passwords)
    cfg = _load(config_file, overrides, pub_key_file=pub_key_file)
    init_logging(base_dir=log_dir, verbose=verbose)

    runner = make_runner(host, login_user, identity, port)
    try:
        provisioner = Provisioner(cfg, runner, default_steps(cfg, runner, prompt_password), host=host or "localhost")
        planned = provisioner.plan()
    except PrivilegeError as e:
        typer.secho(f"[ERROR] {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(EXIT_PRIVILEGE)
    except ProvisionError as e:
        typer.secho(f"[ERROR] {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(EXIT_STEP_FAILED)
    finally:
        _close(runner)

    for name, action in planned:
        typer.echo(f"{name:<40} {action}")


@app.command()
def steps(
    config_file: Optional[Path] = typer.Option(None, "--config", help="YAML config file"),
    user: Optional[str] = typer.Option(None, "--user"),
):
    """
    List the provisioning steps in execution order.
    """
    # nothing runs, so a missing target user only shows up in the step names
    cfg = _load(config_file, {"ssh_user": user}, prompt=lambda text: "<user>")
    for i, step in enumerate(default_steps(cfg, LocalRunner(), prompt_password), 1):
        typer.echo(f"{i:>2}. {step.name}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
