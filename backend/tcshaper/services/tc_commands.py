"""
Typed tc operations.

Each operation renders to exactly one `tc` command line. Removal
operations are tolerant: the shaper accepts a "no such qdisc" answer
for them.
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import ClassVar, List, Optional

from ..models.container import TrafficPolicy


class TcOperation(BaseModel):
    model_config = ConfigDict(frozen=True)

    tolerate_missing: ClassVar[bool] = False

    device: str = Field(..., description="Device the operation applies to")

    def arguments(self) -> str:
        raise NotImplementedError

    def render(self, tc_binary: str = "tc") -> str:
        return f"{tc_binary} {self.arguments()}"


class RemoveQdisc(TcOperation):
    """Delete the root or ingress qdisc if there is one."""
    tolerate_missing: ClassVar[bool] = True

    parent: str = "root"

    def arguments(self) -> str:
        return f"qdisc del dev {self.device} {self.parent}"


class AddRateLimiter(TcOperation):
    """Root HTB qdisc."""
    handle: str = "1:"
    default_class: Optional[str] = None

    def arguments(self) -> str:
        args = f"qdisc add dev {self.device} root handle {self.handle} htb r2q 1"
        if self.default_class:
            args += f" default {self.default_class}"
        return args


class AddRateClass(TcOperation):
    parent: str
    classid: str
    rate: str
    ceil: str
    prio: Optional[int] = None

    def arguments(self) -> str:
        args = (
            f"class add dev {self.device} parent {self.parent} "
            f"classid {self.classid} htb rate {self.rate} ceil {self.ceil}"
        )
        if self.prio is not None:
            args += f" prio {self.prio}"
        return args


class AddImpairment(TcOperation):
    """netem qdisc chained below an HTB class."""
    parent: str
    handle: str
    clauses: str

    def arguments(self) -> str:
        return f"qdisc add dev {self.device} parent {self.parent} handle {self.handle} netem {self.clauses}"


class AddMatchAllFilter(TcOperation):
    parent: str
    flowid: str

    def arguments(self) -> str:
        return f"filter add dev {self.device} parent {self.parent} matchall flowid {self.flowid}"


class AddIngressQdisc(TcOperation):
    def arguments(self) -> str:
        return f"qdisc add dev {self.device} ingress"


class AddMirredRedirect(TcOperation):
    """Redirect everything arriving on device to the target's egress."""
    target: str

    def arguments(self) -> str:
        return f"filter add dev {self.device} ingress matchall action mirred egress redirect dev {self.target}"


def netem_clauses(policy: TrafficPolicy) -> str:
    """
    Build the netem argument string.

    netem reads its arguments positionally, so the order is fixed:
    delay [variation [correlation]], loss [correlation], duplicate,
    corrupt, reorder. Undeclared values are left out.
    """
    clauses: List[str] = ["delay", policy.latency_delay]

    if policy.has_delay and policy.latency_variation:
        clauses.append(policy.latency_variation)
        if policy.latency_correlation:
            clauses.append(policy.latency_correlation)

    if policy.loss_probability:
        clauses += ["loss", policy.loss_probability]
        if policy.loss_correlation:
            clauses.append(policy.loss_correlation)

    if policy.packet_duplication:
        clauses += ["duplicate", policy.packet_duplication]

    if policy.packet_corruption:
        clauses += ["corrupt", policy.packet_corruption]

    if policy.packet_reordering:
        clauses += ["reorder", policy.packet_reordering]

    return " ".join(clauses)
