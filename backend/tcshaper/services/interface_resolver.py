"""
Interface Resolver - finds the host side veth of each container link.
"""
import logging
from typing import List

from ..errors import InterfaceNotFound, NamespaceLinkFailed
from ..models.veth import VirtualLink
from ..utils.command import CommandExecutor
from ..utils.parsers import parse_links
from .state_store import NamespaceLinker

logger = logging.getLogger(__name__)


class InterfaceResolver:
    """
    Matches veth ends in the host namespace with the ends inside a
    container's network namespace.

    Nothing is cached: links are listed again on every call.
    """

    def __init__(
        self,
        executor: CommandExecutor,
        namespaces: NamespaceLinker,
        ip_binary: str = "/usr/sbin/ip"
    ):
        self.executor = executor
        self.namespaces = namespaces
        self.ip = ip_binary

    def resolve(self, name: str, sandbox_key: str) -> List[str]:
        """
        Find host side devices paired with the container's interfaces.

        Leaves a namespace handle for the container in place; it is
        removed when the container stops.

        Args:
            name: Container name
            sandbox_key: Path of the container's network namespace

        Returns:
            Host device names in host listing order

        Raises:
            InterfaceNotFound: If no host veth pairs with the container
            CommandFailed: If listing interfaces fails
        """
        container_links = self.container_links(name, sandbox_key)
        host_links = self.host_links()

        veths = []
        for host_link in host_links:
            for container_link in container_links:
                if host_link.pairs_with(container_link):
                    logger.debug(
                        "Found veth, container: %s, device: %s, peer: %s",
                        name, host_link.device, container_link.device
                    )
                    veths.append(host_link.device)

        if not veths:
            raise InterfaceNotFound(name)
        return veths

    def host_links(self) -> List[VirtualLink]:
        output = self.executor.check(f"{self.ip} addr show type veth")
        return parse_links(output)

    def container_links(self, name: str, sandbox_key: str) -> List[VirtualLink]:
        """List links inside the container that are up and not loopback."""
        try:
            self.namespaces.link(name, sandbox_key)
        except OSError as e:
            raise NamespaceLinkFailed(name, str(e)) from e

        output = self.executor.check(f"{self.ip} netns exec {name} {self.ip} addr show")
        return parse_links(output, keep=lambda link: link.is_up and not link.is_loopback)
