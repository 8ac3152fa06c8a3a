from pydantic import BaseModel, Field
from typing import FrozenSet


class VirtualLink(BaseModel):
    """One end of a veth pair as listed by `ip addr show`."""
    device: str = Field(..., description="Interface name, e.g. 'veth1a2b3c4' or 'eth0'")
    index: int = Field(..., description="Interface index in its own namespace")
    peer_index: int = Field(..., description="Index of the other end, as reported locally")
    flags: FrozenSet[str] = frozenset()

    @property
    def is_up(self) -> bool:
        return "UP" in self.flags

    @property
    def is_loopback(self) -> bool:
        return "LOOPBACK" in self.flags

    def pairs_with(self, other: "VirtualLink") -> bool:
        """
        Check whether two links are the two ends of the same veth pair.

        Interface indices are only unique per namespace, so both
        directions have to agree.
        """
        return self.index == other.peer_index and other.index == self.peer_index
