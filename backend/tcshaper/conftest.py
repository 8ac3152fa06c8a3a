"""
Shared fakes: nothing here touches the host network or a Docker daemon.
"""
from typing import Any, Dict, List, Optional, Tuple

import docker
import pytest

from .services.container_inventory import ContainerInventory
from .services.interface_resolver import InterfaceResolver
from .services.reflector_manager import ReflectorManager
from .services.state_store import NamespaceLinker, ReflectorStore
from .services.sync_service import LifecycleSynchronizer
from .services.traffic_shaper import TrafficShaper
from .utils.command import CommandExecutor

# `ip addr show type veth` on the host: web's eth0 is paired with
# veth1a2b3c4, db's eth0 with veth9f8e7d6.
HOST_LINKS = """\
7: veth1a2b3c4@if6: <BROADCAST,MULTICAST,UP,LOWER_UP> mtu 1500 qdisc noqueue master docker0 state UP group default
    link/ether 6e:5b:1c:aa:bb:cc brd ff:ff:ff:ff:ff:ff link-netnsid 0
    inet6 fe80::6c5b:1cff:feaa:bbcc/64 scope link
       valid_lft forever preferred_lft forever
9: veth9f8e7d6@if8: <BROADCAST,MULTICAST,UP,LOWER_UP> mtu 1500 qdisc noqueue master docker0 state UP group default
    link/ether 3a:11:22:33:44:55 brd ff:ff:ff:ff:ff:ff link-netnsid 1
"""

WEB_LINKS = """\
1: lo: <LOOPBACK,UP,LOWER_UP> mtu 65536 qdisc noqueue state UNKNOWN group default qlen 1000
    link/loopback 00:00:00:00:00:00 brd 00:00:00:00:00:00
    inet 127.0.0.1/8 scope host lo
6: eth0@if7: <BROADCAST,MULTICAST,UP,LOWER_UP> mtu 1500 qdisc noqueue state UP group default
    link/ether 02:42:ac:11:00:02 brd ff:ff:ff:ff:ff:ff link-netnsid 0
    inet 172.17.0.2/16 brd 172.17.255.255 scope global eth0
"""

DB_LINKS = """\
1: lo: <LOOPBACK,UP,LOWER_UP> mtu 65536 qdisc noqueue state UNKNOWN group default qlen 1000
8: eth0@if9: <BROADCAST,MULTICAST,UP,LOWER_UP> mtu 1500 qdisc noqueue state UP group default
    inet 172.17.0.3/16 brd 172.17.255.255 scope global eth0
"""

NO_SUCH_QDISC = "RTNETLINK answers: No such file or directory\n"


class FakeExecutor(CommandExecutor):
    """Records commands; answers with the first matching canned response."""

    def __init__(self):
        self.commands: List[str] = []
        self.responses: List[Tuple[str, int, str]] = []

    def respond(self, fragment: str, exit_code: int = 0, output: str = ""):
        self.responses.append((fragment, exit_code, output))
        return self

    def run(self, command: str) -> Tuple[int, str]:
        self.commands.append(command)
        for fragment, exit_code, output in self.responses:
            if fragment in command:
                return exit_code, output
        return 0, ""

    def matching(self, fragment: str) -> List[str]:
        return [command for command in self.commands if fragment in command]


class FakeContainer:
    def __init__(self, container_id: str, labels: Dict[str, str]):
        self.id = container_id
        self.labels = labels


class FakeContainers:
    def __init__(self, client: "FakeDockerClient"):
        self.client = client

    def list(self, filters: Optional[Dict[str, Any]] = None):
        self.client.list_filters.append(filters)
        return list(self.client.running)


class FakeAPI:
    def __init__(self, client: "FakeDockerClient"):
        self.client = client

    def inspect_container(self, container_id: str) -> Dict[str, Any]:
        if container_id not in self.client.inspected:
            raise docker.errors.NotFound(f"No such container: {container_id}")
        return self.client.inspected[container_id]


class FakeDockerClient:
    """The parts of docker.DockerClient the inventory uses."""

    def __init__(self):
        self.running: List[FakeContainer] = []
        self.inspected: Dict[str, Dict[str, Any]] = {}
        self.list_filters: List[Dict[str, Any]] = []
        self.event_streams: List[Any] = []
        self.event_filters: List[Dict[str, Any]] = []
        self.containers = FakeContainers(self)
        self.api = FakeAPI(self)

    def add(self, container_id: str, name: str, labels: Dict[str, str], running: bool = True):
        if running:
            self.running.append(FakeContainer(container_id, labels))
        self.inspected[container_id] = {
            "Name": f"/{name}",
            "NetworkSettings": {"SandboxKey": f"/var/run/docker/netns/{container_id[:12]}"},
        }

    def events(self, decode: bool = False, filters: Optional[Dict[str, Any]] = None):
        """Each call consumes the next stream: an exception to raise or an iterable."""
        self.event_filters.append(filters)
        stream = self.event_streams.pop(0)
        if isinstance(stream, Exception):
            raise stream
        return iter(stream)


def make_event(action: str, container_id: str, name: str, labels: Optional[Dict[str, str]] = None):
    attributes = {"name": name, "image": "nginx"}
    attributes.update(labels or {})
    return {
        "Type": "container",
        "Action": action,
        "status": action,
        "id": container_id,
        "Actor": {"ID": container_id, "Attributes": attributes},
    }


@pytest.fixture
def executor() -> FakeExecutor:
    return (
        FakeExecutor()
        .respond("netns exec web ", 0, WEB_LINKS)
        .respond("netns exec db ", 0, DB_LINKS)
        .respond("addr show type veth", 0, HOST_LINKS)
    )


@pytest.fixture
def store():
    store = ReflectorStore("sqlite://")
    yield store
    store.close()


@pytest.fixture
def namespaces(tmp_path) -> NamespaceLinker:
    return NamespaceLinker(str(tmp_path / "netns"))


@pytest.fixture
def docker_client() -> FakeDockerClient:
    return FakeDockerClient()


@pytest.fixture
def reflectors(executor, store) -> ReflectorManager:
    return ReflectorManager(executor, store, ip_binary="ip")


@pytest.fixture
def inventory(docker_client, executor, namespaces, reflectors) -> ContainerInventory:
    resolver = InterfaceResolver(executor, namespaces, ip_binary="ip")
    return ContainerInventory(docker_client, resolver, reflectors)


@pytest.fixture
def synchronizer(inventory, executor, reflectors, namespaces) -> LifecycleSynchronizer:
    return LifecycleSynchronizer(
        inventory,
        TrafficShaper(executor, tc_binary="tc"),
        reflectors,
        namespaces,
        reconnect_delay=5.0,
        sleep=lambda seconds: None,
    )
