"""
Container Inventory Adapter - turns Docker containers and events into
ManagedContainer records.
"""
import logging
from typing import Any, Dict, Iterator, List, Tuple

import docker
import requests

from ..errors import DaemonUnavailable, ProvisionFailed, ShaperError
from ..models.container import DEFAULT_BANDWIDTH, DEFAULT_LABEL_PREFIX, ManagedContainer, TrafficPolicy
from .interface_resolver import InterfaceResolver
from .reflector_manager import ReflectorManager

logger = logging.getLogger(__name__)

# docker-py lets transport errors of the daemon socket through unwrapped
DOCKER_ERRORS = (docker.errors.DockerException, requests.exceptions.RequestException)


class ContainerInventory:
    """
    Resolves opted-in containers into one record per veth.

    Responsibilities:
    - List running containers carrying the opt-in label
    - Inspect a container for its name and network namespace
    - Resolve host veths and provision a reflector for each
    - Subscribe to start/die events of opted-in containers
    """

    def __init__(
        self,
        client: docker.DockerClient,
        resolver: InterfaceResolver,
        reflectors: ReflectorManager,
        label_prefix: str = DEFAULT_LABEL_PREFIX,
        enabled_value: str = "1",
        default_bandwidth: str = DEFAULT_BANDWIDTH,
    ):
        self.client = client
        self.resolver = resolver
        self.reflectors = reflectors
        self.label_prefix = label_prefix
        self.enabled_value = enabled_value
        self.default_bandwidth = default_bandwidth

    @property
    def label_filter(self) -> str:
        return f"{self.label_prefix}.enabled={self.enabled_value}"

    def snapshot(self) -> List[ManagedContainer]:
        """
        Resolve every running opted-in container.

        A container that cannot be resolved is logged and skipped.

        Raises:
            DaemonUnavailable: If containers cannot be listed
        """
        try:
            containers = self.client.containers.list(filters={
                "label": self.label_filter,
                "status": "running"
            })
        except DOCKER_ERRORS as e:
            raise DaemonUnavailable(str(e)) from e

        records = []
        for container in containers:
            try:
                records.extend(self._resolve(container.id, container.labels))
            except ShaperError as e:
                logger.error("Cannot resolve container %s: %s", container.id[:12], e)
        return records

    def from_start_event(self, event: Dict[str, Any]) -> List[ManagedContainer]:
        """
        Resolve the container of a start event.

        Raises:
            ShaperError: If the container cannot be resolved
        """
        container_id, attributes = self._actor(event)
        return self._resolve(container_id, attributes)

    def from_stop_event(self, event: Dict[str, Any]) -> ManagedContainer:
        """
        Identity of the container of a die event; die events carry no policy.

        The name is taken from the event itself since the container may
        already be gone.

        Raises:
            DaemonUnavailable: If the name must be inspected and that fails
        """
        container_id, attributes = self._actor(event)
        name = attributes.get("name")
        if not name:
            name, _ = self.inspect(container_id)
        return ManagedContainer(id=container_id, name=name)

    def subscribe(self) -> Iterator[Dict[str, Any]]:
        """
        Open the event stream of opted-in containers.

        Raises:
            docker.errors.DockerException: If the stream cannot be opened
        """
        return self.client.events(decode=True, filters={
            "type": "container",
            "label": self.label_filter,
            "event": ["start", "die"]
        })

    def inspect(self, container_id: str) -> Tuple[str, str]:
        """
        Returns:
            Tuple of (name, sandbox_key)

        Raises:
            DaemonUnavailable: If the daemon cannot be reached or the
                container does not exist
        """
        try:
            info = self.client.api.inspect_container(container_id)
        except DOCKER_ERRORS as e:
            raise DaemonUnavailable(str(e), container=container_id[:12]) from e
        name = info.get("Name", "").lstrip("/")
        sandbox_key = (info.get("NetworkSettings") or {}).get("SandboxKey", "")
        return name, sandbox_key

    def _resolve(self, container_id: str, labels: Dict[str, str]) -> List[ManagedContainer]:
        name, sandbox_key = self.inspect(container_id)
        policy = TrafficPolicy.from_labels(
            labels or {},
            prefix=self.label_prefix,
            default_bandwidth=self.default_bandwidth
        )
        veths = self.resolver.resolve(name, sandbox_key)

        records = []
        for veth in veths:
            try:
                ifb = self.reflectors.provision(name, veth)
            except ProvisionFailed as e:
                logger.error("%s, ingress will not be shaped on %s", e, veth)
                ifb = None
            records.append(ManagedContainer(
                id=container_id,
                name=name,
                host_link=veth,
                reflector_link=ifb,
                policy=policy
            ))
        return records

    @staticmethod
    def _actor(event: Dict[str, Any]) -> Tuple[str, Dict[str, str]]:
        actor = event.get("Actor") or {}
        container_id = actor.get("ID") or event.get("id", "")
        return container_id, actor.get("Attributes") or {}
