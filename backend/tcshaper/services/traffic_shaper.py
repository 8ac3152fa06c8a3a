"""
Traffic Policy Compiler - turns a container's policy into tc operations
and runs them.

Egress of the host veth is shaped with HTB + netem using the upload
values. Ingress is redirected to the container's IFB device and shaped
there with HTB using the download values.
"""
import logging
from typing import List

from ..errors import IngressUnavailable, InterfaceNotFound, ShapingCommandFailed
from ..models.container import ManagedContainer
from ..utils.command import CommandExecutor
from .tc_commands import (
    AddImpairment,
    AddIngressQdisc,
    AddMatchAllFilter,
    AddMirredRedirect,
    AddRateClass,
    AddRateLimiter,
    RemoveQdisc,
    TcOperation,
    netem_clauses,
)

logger = logging.getLogger(__name__)

# Answers of `tc qdisc del` when there is nothing to delete
NOT_FOUND_RESPONSES = (
    "RTNETLINK answers: No such file or directory",
    "Error: Cannot delete qdisc with handle of zero.",
    "Error: Cannot find specified qdisc on specified device.",
)


class TrafficShaper:
    """Compiles and applies the fixed one-class-per-direction topology."""

    def __init__(self, executor: CommandExecutor, tc_binary: str = "/usr/sbin/tc"):
        self.executor = executor
        self.tc = tc_binary

    def compile_egress(self, container: ManagedContainer) -> List[TcOperation]:
        """
        Operations shaping traffic sent out of the host veth.

        Raises:
            InterfaceNotFound: If the record has no host veth
        """
        veth = container.host_link
        if not veth:
            raise InterfaceNotFound(container.name)
        policy = container.policy

        return [
            RemoveQdisc(device=veth, parent="root"),
            AddRateLimiter(device=veth, handle="1:", default_class="2"),
            AddRateClass(
                device=veth, parent="1:", classid="1:2",
                rate=policy.upload_rate, ceil=policy.upload_ceil, prio=2
            ),
            AddImpairment(device=veth, parent="1:2", handle="10:0", clauses=netem_clauses(policy)),
            AddMatchAllFilter(device=veth, parent="1:0", flowid="1:2"),
        ]

    def compile_ingress(self, container: ManagedContainer) -> List[TcOperation]:
        """
        Operations shaping traffic received on the host veth.

        Raises:
            IngressUnavailable: If no reflector was provisioned
            InterfaceNotFound: If the record has no host veth
        """
        ifb = container.reflector_link
        if not ifb:
            raise IngressUnavailable(container.name)
        veth = container.host_link
        if not veth:
            raise InterfaceNotFound(container.name)
        policy = container.policy

        return [
            RemoveQdisc(device=ifb, parent="root"),
            AddRateLimiter(device=ifb, handle="1:"),
            AddRateClass(
                device=ifb, parent="1:", classid="1:1",
                rate=policy.download_rate, ceil=policy.download_ceil
            ),
            AddMatchAllFilter(device=ifb, parent="1:", flowid="1:1"),
            RemoveQdisc(device=veth, parent="ingress"),
            AddIngressQdisc(device=veth),
            AddMirredRedirect(device=veth, target=ifb),
        ]

    def compile(self, container: ManagedContainer) -> List[TcOperation]:
        """Full ordered operation list: egress then ingress."""
        return self.compile_egress(container) + self.compile_ingress(container)

    def render(self, container: ManagedContainer) -> List[str]:
        return [operation.render(self.tc) for operation in self.compile(container)]

    def apply(self, container: ManagedContainer) -> None:
        """
        Install egress shaping, then ingress shaping.

        Egress is installed before the ingress pipeline is compiled, so a
        container without a reflector keeps its egress policy and the
        failure is reported as IngressUnavailable.

        Raises:
            ShapingCommandFailed: If a tc command fails
            IngressUnavailable: If no reflector was provisioned
        """
        for operation in self.compile_egress(container):
            self._run(operation)
        for operation in self.compile_ingress(container):
            self._run(operation)

    def _run(self, operation: TcOperation) -> None:
        command = operation.render(self.tc)
        exit_code, output = self.executor.run(command)
        if exit_code == 0:
            return
        if operation.tolerate_missing and output.strip() in NOT_FOUND_RESPONSES:
            logger.debug("Nothing to delete: %s", command)
            return
        raise ShapingCommandFailed(command, output, exit_code)
