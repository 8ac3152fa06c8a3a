"""
Reflector Device Manager - IFB devices that make ingress shapeable.

qdiscs only shape egress, so traffic arriving on a host veth is
redirected to an IFB device and shaped on its way out of there.
"""
import logging
import re

from ..errors import CommandFailed, ProvisionFailed, ReflectorMappingMissing, StateStoreError
from ..utils.command import CommandExecutor
from .state_store import ReflectorStore

logger = logging.getLogger(__name__)


def reflector_name(host_link: str) -> str:
    """
    Derive the IFB device name from a host veth name.

    veth1a2b3c4 -> ifb1a2b3c4
    """
    return f"ifb{re.sub(r'^veth', '', host_link)}"


class ReflectorManager:
    """
    Creates and removes IFB devices and records which container owns one.

    Creating the device and recording it are not atomic: a crash in
    between leaves a device nobody will remove.
    """

    def __init__(
        self,
        executor: CommandExecutor,
        store: ReflectorStore,
        ip_binary: str = "/usr/sbin/ip"
    ):
        self.executor = executor
        self.store = store
        self.ip = ip_binary

    def provision(self, name: str, host_link: str) -> str:
        """
        Create (or reuse) the IFB device for a host veth and bring it up.

        Args:
            name: Container name the device is recorded under
            host_link: Host side veth

        Returns:
            IFB device name

        Raises:
            ProvisionFailed: If the device cannot be created, set up or recorded
        """
        ifb = reflector_name(host_link)

        try:
            self._create(ifb)
            self.executor.check(f"{self.ip} link set dev {ifb} up")
            self.store.put(name, ifb)
        except (CommandFailed, StateStoreError) as e:
            raise ProvisionFailed(name, str(e)) from e

        logger.debug("Provisioned %s for container %s (%s)", ifb, name, host_link)
        return ifb

    def _create(self, ifb: str) -> None:
        command = f"{self.ip} link add name {ifb} type ifb"
        exit_code, output = self.executor.run(command)
        if exit_code == 0:
            return
        if "File exists" in output:
            logger.debug("Reflector %s already exists, reusing it", ifb)
            return
        raise CommandFailed(command, output, exit_code)

    def deprovision(self, name: str) -> str:
        """
        Remove the IFB device recorded for a container.

        The record is removed in every case, even when the device
        commands fail.

        Returns:
            Name of the removed device

        Raises:
            ReflectorMappingMissing: If nothing is recorded for the container
            CommandFailed: If the device cannot be set down or deleted
        """
        ifb = self.store.get(name)
        if ifb is None:
            self.store.delete(name)
            raise ReflectorMappingMissing(name)

        try:
            self.executor.check(f"{self.ip} link set dev {ifb} down")
            self.executor.check(f"{self.ip} link del name {ifb}")
        finally:
            self.store.delete(name)

        logger.debug("Removed reflector %s of container %s", ifb, name)
        return ifb
