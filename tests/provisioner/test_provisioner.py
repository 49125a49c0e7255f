import pytest

from hostprep.errors import PrivilegeError
from hostprep.observers.dispatcher import EventBus
from hostprep.provisioner import (
    ALREADY_SATISFIED,
    Provisioner,
    RunState,
    StepOutcome,
    default_steps,
)
from hostprep.steps.firewall import FirewallOpen
from hostprep.steps.network import StaticIPConfigure
from hostprep.steps.ssh_key import SshKeyInstall


class Capture:
    def __init__(self): self.events = []
    def notify(self, ev): self.events.append(ev)


def _provisioner(host, config, observers=None, prompt=None):
    prompt = prompt or (lambda account: f"{account}-pw")
    return Provisioner(
        config,
        host,
        default_steps(config, host, prompt),
        bus=EventBus(observers=observers or []),
    )


def _outcomes(result):
    return {r.name: r.outcome for r in result.results}


def test_step_order_puts_network_last(host, config):
    names = [s.name for s in default_steps(config, host, lambda a: "x")]
    assert names == [
        "install-packages",
        "enable-service:ssh",
        "enable-service:NetworkManager",
        "set-password:bgi",
        "set-password:root",
        "grant-sudo:bgi",
        "install-ssh-key:bgi",
        "open-firewall:22/tcp",
        "configure-static-ip:wlan0",
    ]


def test_full_run_completes(host, config):
    host.tools.add("ufw")
    p = _provisioner(host, config)
    assert p.state == RunState.PENDING

    result = p.run()

    assert p.state == RunState.COMPLETED
    assert result.ok
    assert all(o == StepOutcome.APPLIED for o in _outcomes(result).values())
    assert {"openssh-server", "network-manager"} <= host.packages
    assert host.passwords == {"bgi": "bgi-pw", "root": "root-pw"}
    assert host.files["/etc/sudoers.d/bgi"].content == "bgi ALL=(ALL) NOPASSWD:ALL\n"
    assert host.ufw_rules == ["22/tcp"]
    assert host.nm_settings["wifi-home"]["ipv4.method"] == "manual"


def test_static_ip_runs_after_ssh_key_and_firewall(host, config):
    host.tools.add("ufw")
    _provisioner(host, config).run()

    key = host.index_of("install", "-m", "600", "-o", "bgi")
    firewall = host.index_of("ufw", "reload")
    modify = host.index_of("nmcli", "connection", "modify")
    assert key < modify
    assert firewall < modify


def test_rerun_skips_everything_but_passwords(host, config):
    host.tools.add("ufw")
    _provisioner(host, config).run()
    host.calls.clear()

    result = _provisioner(host, config).run()

    assert result.ok
    outcomes = _outcomes(result)
    assert outcomes.pop("set-password:bgi") == StepOutcome.APPLIED
    assert outcomes.pop("set-password:root") == StepOutcome.APPLIED
    assert set(outcomes.values()) == {StepOutcome.SKIPPED}
    assert all(r.detail == ALREADY_SATISFIED for r in result.results if r.outcome == StepOutcome.SKIPPED)
    assert not host.ran("env", "DEBIAN_FRONTEND=noninteractive", "apt-get")
    assert not host.ran("nmcli", "connection", "modify")


def test_failed_service_stops_the_run(host, config):
    host.fail("systemctl", "start", "ssh", rc=5, stderr="Failed to start ssh.service: Unit not found.")
    p = _provisioner(host, config, prompt=lambda a: pytest.fail("password step must not run"))

    result = p.run()

    assert p.state == RunState.FAILED
    assert not result.ok
    failure = result.failure
    assert failure.name == "enable-service:ssh"
    assert failure.returncode == 5
    assert "Unit not found" in failure.output
    assert [r.name for r in result.results] == ["install-packages", "enable-service:ssh"]
    assert not host.ran("systemctl", "enable", "NetworkManager")
    assert not host.ran("chpasswd")
    assert "/etc/sudoers.d/bgi" not in host.files


def test_rerun_after_failure_resumes(host, config):
    host.fail("systemctl", "start", "NetworkManager", rc=1)
    first = _provisioner(host, config).run()
    assert first.failure.name == "enable-service:NetworkManager"

    host.failures.clear()
    host.calls.clear()
    second = _provisioner(host, config).run()

    assert second.ok
    outcomes = _outcomes(second)
    assert outcomes["install-packages"] == StepOutcome.SKIPPED
    assert outcomes["enable-service:ssh"] == StepOutcome.SKIPPED
    assert outcomes["enable-service:NetworkManager"] == StepOutcome.APPLIED


def test_no_key_means_no_key_writes_and_completion(host, config):
    cfg = config.model_copy(update={"ssh_pub_key": None})

    result = _provisioner(host, cfg).run()

    assert result.ok
    key_result = next(r for r in result.results if r.name == "install-ssh-key:bgi")
    assert key_result.outcome == StepOutcome.SKIPPED
    assert key_result.detail == "no public SSH key configured"
    assert not any(w.startswith("/home/bgi") for w in host.writes)


def test_absent_firewall_is_skipped_not_failed(host, config):
    result = _provisioner(host, config).run()
    fw = next(r for r in result.results if r.name == "open-firewall:22/tcp")
    assert fw.outcome == StepOutcome.SKIPPED
    assert fw.detail == "ufw not installed"


def test_missing_connection_fails_last_step(host, config):
    cfg = config.model_copy(update={"interface": "eth1"})
    result = _provisioner(host, cfg).run()

    assert result.state == RunState.FAILED
    assert result.failure.name == "configure-static-ip:eth1"
    assert result.failure.returncode is None
    assert not host.ran("nmcli", "connection", "modify")


def test_privilege_checked_before_any_step(host, config):
    host.root = False
    p = _provisioner(host, config)

    with pytest.raises(PrivilegeError):
        p.run()

    assert p.state == RunState.FAILED
    assert host.calls == [("id", "-u")]


def test_events_are_emitted(host, config):
    cap = Capture()
    _provisioner(host, config, observers=[cap]).run()

    kinds = [e.__class__.__name__ for e in cap.events]
    assert kinds[0] == "RunStarted"
    assert kinds[-1] == "RunFinished"
    assert "StepStarted" in kinds and "StepApplied" in kinds and "StepSkipped" in kinds
    assert len({e.run_id for e in cap.events}) == 1
    assert cap.events[-1].state == "completed"


def test_failing_observer_does_not_break_run(host, config):
    class Broken:
        def notify(self, ev): raise RuntimeError("observer down")

    result = _provisioner(host, config, observers=[Broken()]).run()
    assert result.ok


def test_plan_does_not_apply(host, config):
    steps = [SshKeyInstall(host, "bgi"), FirewallOpen(host, 22), StaticIPConfigure(host, "wlan0")]
    planned = Provisioner(config, host, steps).plan()

    assert planned == [
        ("install-ssh-key:bgi", "apply"),
        ("open-firewall:22/tcp", "ufw not installed"),
        ("configure-static-ip:wlan0", "apply"),
    ]
    assert host.writes == []
    assert not host.ran("nmcli", "connection", "modify")
