from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Dict, List, Optional, Tuple

DEFAULT_LABEL_PREFIX = "org.label-schema.tc"
DEFAULT_BANDWIDTH = "10000mbps"
ZERO_DELAY = "0ms"

# Policy field -> label suffix under the label prefix
POLICY_LABELS: Dict[str, str] = {
    "upload_rate": "upload.rate",
    "upload_ceil": "upload.ceil",
    "download_rate": "download.rate",
    "download_ceil": "download.ceil",
    "latency_delay": "latency.delay",
    "latency_variation": "latency.variation",
    "latency_correlation": "latency.correlation",
    "loss_probability": "loss.probability",
    "loss_correlation": "loss.correlation",
    "packet_duplication": "packet.duplication",
    "packet_corruption": "packet.corruption",
    "packet_reordering": "packet.reordering",
}


def _rate_pair(rate: Optional[str], ceil: Optional[str], default: str) -> Tuple[str, str]:
    """Resolve a rate/ceil pair so that neither side is ever unset."""
    if rate is None and ceil is None:
        return default, default
    if ceil is None:
        return rate, rate
    if rate is None:
        return ceil, ceil
    return rate, ceil


class TrafficPolicy(BaseModel):
    """Traffic shaping policy declared through container labels.

    Values are opaque tc strings ("5mbps", "100ms", "10%"); nothing here
    interprets them. Impairment fields left as None are omitted from the
    compiled netem clauses entirely.
    """
    model_config = ConfigDict(frozen=True)

    download_rate: str = DEFAULT_BANDWIDTH
    download_ceil: str = DEFAULT_BANDWIDTH
    upload_rate: str = DEFAULT_BANDWIDTH
    upload_ceil: str = DEFAULT_BANDWIDTH
    latency_delay: str = ZERO_DELAY
    latency_variation: Optional[str] = None
    latency_correlation: Optional[str] = None
    loss_probability: Optional[str] = None
    loss_correlation: Optional[str] = None
    packet_duplication: Optional[str] = None
    packet_corruption: Optional[str] = None
    packet_reordering: Optional[str] = None

    @classmethod
    def from_labels(
        cls,
        labels: Dict[str, str],
        prefix: str = DEFAULT_LABEL_PREFIX,
        default_bandwidth: str = DEFAULT_BANDWIDTH,
    ) -> "TrafficPolicy":
        """
        Build a policy from container labels.

        Args:
            labels: Container labels (or event actor attributes)
            prefix: Label namespace, e.g. "org.label-schema.tc"
            default_bandwidth: Rate used when neither rate nor ceil is declared

        Returns:
            TrafficPolicy with rate/ceil pairs and delay defaulted
        """
        declared = {}
        for field, suffix in POLICY_LABELS.items():
            value = labels.get(f"{prefix}.{suffix}")
            if value:
                declared[field] = value

        upload_rate, upload_ceil = _rate_pair(
            declared.pop("upload_rate", None), declared.pop("upload_ceil", None), default_bandwidth
        )
        download_rate, download_ceil = _rate_pair(
            declared.pop("download_rate", None), declared.pop("download_ceil", None), default_bandwidth
        )
        declared.setdefault("latency_delay", ZERO_DELAY)

        return cls(
            upload_rate=upload_rate,
            upload_ceil=upload_ceil,
            download_rate=download_rate,
            download_ceil=download_ceil,
            **declared,
        )

    @property
    def has_delay(self) -> bool:
        return self.latency_delay != ZERO_DELAY


class ManagedContainer(BaseModel):
    """
    One container link that traffic control is applied to.

    A container attached to N veth pairs produces N records. Records are
    built fresh for every discovery pass or event and never mutated.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Short container ID (12 chars)")
    name: str = Field(..., description="Container name without leading '/'")
    host_link: Optional[str] = Field(None, description="Host side veth, e.g. 'veth1a2b3c4'")
    reflector_link: Optional[str] = Field(None, description="IFB device shaping ingress, e.g. 'ifb1a2b3c4'")
    policy: TrafficPolicy = Field(default_factory=TrafficPolicy)

    @field_validator("id")
    @classmethod
    def _short_id(cls, value: str) -> str:
        return value[:12]

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        return value.lstrip("/")

    def summary(self) -> str:
        """One-line description of the applied policy for logs."""
        policy = self.policy
        parts: List[str] = [
            f"container: {self.name}",
            f"id: {self.id}",
            f"veth: {self.host_link}",
            f"ifb: {self.reflector_link}",
            f"download rate: {policy.download_rate}",
            f"download ceil: {policy.download_ceil}",
            f"upload rate: {policy.upload_rate}",
            f"upload ceil: {policy.upload_ceil}",
        ]

        if policy.has_delay:
            parts.append(f"latency delay: {policy.latency_delay}")
            if policy.latency_variation:
                parts.append(f"latency variation: {policy.latency_variation}")
            if policy.latency_correlation:
                parts.append(f"latency correlation: {policy.latency_correlation}")

        if policy.loss_probability:
            parts.append(f"loss probability: {policy.loss_probability}")
            if policy.loss_correlation:
                parts.append(f"loss correlation: {policy.loss_correlation}")

        if policy.packet_duplication:
            parts.append(f"packet duplication: {policy.packet_duplication}")
        if policy.packet_corruption:
            parts.append(f"packet corruption: {policy.packet_corruption}")
        if policy.packet_reordering:
            parts.append(f"packet reordering: {policy.packet_reordering}")

        return ", ".join(parts)
