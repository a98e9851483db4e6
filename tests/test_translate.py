import pytest

from abs_provisioner.core.errors import ValidationError
from abs_provisioner.core.settings import ProvisionerSettings
from abs_provisioner.core.types import ProvisionedHost
from abs_provisioner.inventory.store import InventoryStore
from abs_provisioner.pooling.translate import node_from_host, parse_vars, platform_uses_ssh, record_hosts


def make_settings(**overrides) -> ProvisionerSettings:
    values = {
        "ssh_user": "root",
        "win_user": "Administrator",
        "password": "pw",
        "ssh_private_key": None,
    }
    values.update(overrides)
    return ProvisionerSettings(**values)


@pytest.mark.parametrize(
    "platform, expected",
    [
        ("centos-7-x86_64", True),
        ("ubuntu-2004-x86_64", True),
        ("win-2019-x86_64", False),
        ("windows-10ent-x86_64", False),
    ],
)
def test_platform_uses_ssh(platform, expected):
    assert platform_uses_ssh(platform) is expected


def test_ssh_node_uses_password_without_private_key():
    host = ProvisionedHost(hostname="abc123.example.com", type="centos-7-x86_64")
    node, group = node_from_host(host, "job-1", make_settings())

    assert group == "ssh_nodes"
    assert node.uri == "abc123.example.com"
    assert node.config == {
        "transport": "ssh",
        "ssh": {"user": "root", "host-key-check": False, "connect-timeout": 120, "password": "pw"},
    }
    assert node.facts == {"provisioner": "abs", "platform": "centos-7-x86_64", "job_id": "job-1"}
    assert node.vars is None


def test_ssh_private_key_takes_precedence_over_password():
    host = ProvisionedHost(hostname="abc123.example.com", type="centos-7-x86_64")
    node, _ = node_from_host(host, "job-1", make_settings(ssh_private_key="~/.ssh/id_rsa"))

    assert node.config["ssh"]["private-key"] == "~/.ssh/id_rsa"
    assert "password" not in node.config["ssh"]


def test_empty_private_key_falls_back_to_password():
    host = ProvisionedHost(hostname="abc123.example.com", type="centos-7-x86_64")
    node, _ = node_from_host(host, "job-1", make_settings(ssh_private_key=""))

    assert node.config["ssh"]["password"] == "pw"


def test_windows_host_gets_winrm_config():
    host = ProvisionedHost(hostname="win1.example.com", type="win-2019-x86_64")
    node, group = node_from_host(host, "job-1", make_settings())

    assert group == "winrm_nodes"
    assert node.config == {
        "transport": "winrm",
        "winrm": {"user": "Administrator", "password": "pw", "ssl": False, "connect-timeout": 120},
    }


def test_vars_are_parsed_and_attached_to_every_node():
    store = InventoryStore.empty()
    hosts = [
        ProvisionedHost(hostname="a.example.com", type="centos-7-x86_64"),
        ProvisionedHost(hostname="b.example.com", type="win-2019-x86_64"),
    ]

    count = record_hosts(store, hosts, "job-1", make_settings(), parse_vars("role: agent\nport: 8140\n"))

    assert count == 2
    assert store.get("a.example.com").vars == {"role": "agent", "port": 8140}
    assert store.get("b.example.com").vars == {"role": "agent", "port": 8140}
    assert [n.uri for n in store.group("ssh_nodes").targets] == ["a.example.com"]
    assert [n.uri for n in store.group("winrm_nodes").targets] == ["b.example.com"]


@pytest.mark.parametrize("text", ["role: [unclosed", "- just\n- a list\n", "just a string"])
def test_bad_vars_are_rejected(text):
    with pytest.raises(ValidationError):
        parse_vars(text)


def test_missing_vars_mean_no_vars():
    assert parse_vars(None) is None
    assert parse_vars("") is None
