import logging
import re
from typing import Callable, List, Optional

from ..models.veth import VirtualLink

logger = logging.getLogger(__name__)

# Marker of a veth pair header line, e.g. "eth0@if7"
PAIR_MARKER = "@if"

# "7: veth1a2b3c4@if6: <BROADCAST,MULTICAST,UP,LOWER_UP> mtu 1500 ..."
_LINK_LINE = re.compile(
    r'^\s*(?P<index>\d+):\s+(?P<device>[^\s@:]+)@if(?P<peer>\d+):\s*(?:<(?P<flags>[^>]*)>)?'
)


def parse_link_line(line: str) -> VirtualLink:
    """
    Parse one interface header line of `ip addr show` output.

    Raises:
        ValueError: If the line is not a well formed veth header
    """
    match = _LINK_LINE.match(line)
    if not match:
        raise ValueError("not a veth header line")

    flags = match.group('flags') or ""
    return VirtualLink(
        device=match.group('device'),
        index=int(match.group('index')),
        peer_index=int(match.group('peer')),
        flags=frozenset(flag for flag in flags.split(',') if flag),
    )


def parse_links(
    output: str,
    keep: Optional[Callable[[VirtualLink], bool]] = None
) -> List[VirtualLink]:
    """
    Parse every veth header line of `ip addr show` output.

    Lines without the pair marker are ignored. Malformed header lines
    are logged and skipped.

    Args:
        output: Raw command output
        keep: Optional filter applied to each parsed link

    Returns:
        Links in listing order
    """
    links = []
    for line in output.splitlines():
        if PAIR_MARKER not in line:
            continue
        try:
            link = parse_link_line(line)
        except ValueError as e:
            logger.error("parse_links: %s, line: %s", e, line.strip())
            continue
        if keep is not None and not keep(link):
            continue
        links.append(link)
    return links
