import os

import pytest

from .conftest import DB_LINKS, HOST_LINKS, WEB_LINKS, FakeExecutor
from .errors import CommandFailed, InterfaceNotFound
from .models.veth import VirtualLink
from .services.interface_resolver import InterfaceResolver
from .utils.parsers import parse_link_line, parse_links


def test_parse_link_line_reads_indices_and_flags():
    link = parse_link_line(
        "7: veth1a2b3c4@if6: <BROADCAST,MULTICAST,UP,LOWER_UP> mtu 1500 qdisc noqueue master docker0"
    )

    assert link.device == "veth1a2b3c4"
    assert link.index == 7
    assert link.peer_index == 6
    assert link.is_up
    assert not link.is_loopback


def test_parse_link_line_rejects_malformed_line():
    with pytest.raises(ValueError):
        parse_link_line("x: eth0@ifNaN: <UP>")


def test_parse_links_skips_malformed_candidates():
    output = "garbage@if line\n" + WEB_LINKS

    links = parse_links(output)

    assert [link.device for link in links] == ["eth0"]


def test_parse_links_applies_filter():
    output = (
        "6: eth0@if7: <BROADCAST,MULTICAST,UP,LOWER_UP> mtu 1500\n"
        "10: eth1@if11: <BROADCAST,MULTICAST> mtu 1500 state DOWN\n"
    )

    links = parse_links(output, keep=lambda link: link.is_up)

    assert [link.device for link in links] == ["eth0"]


def test_pairing_requires_both_directions():
    host = VirtualLink(device="veth5", index=5, peer_index=8)
    paired = VirtualLink(device="eth0", index=8, peer_index=5)
    one_sided = VirtualLink(device="eth0", index=8, peer_index=9)

    assert host.pairs_with(paired)
    assert paired.pairs_with(host)
    assert not host.pairs_with(one_sided)


def test_resolve_returns_paired_host_veth(executor, namespaces):
    resolver = InterfaceResolver(executor, namespaces, ip_binary="ip")

    assert resolver.resolve("web", "/var/run/docker/netns/abc") == ["veth1a2b3c4"]
    assert resolver.resolve("db", "/var/run/docker/netns/def") == ["veth9f8e7d6"]
    assert "ip netns exec web ip addr show" in executor.commands
    assert "ip addr show type veth" in executor.commands


def test_resolve_leaves_namespace_handle_in_place(executor, namespaces):
    resolver = InterfaceResolver(executor, namespaces, ip_binary="ip")

    resolver.resolve("web", "/var/run/docker/netns/abc")

    assert os.readlink(namespaces.path("web")) == "/var/run/docker/netns/abc"


def test_resolve_replaces_stale_namespace_handle(executor, namespaces):
    resolver = InterfaceResolver(executor, namespaces, ip_binary="ip")
    namespaces.link("web", "/var/run/docker/netns/stale")

    resolver.resolve("web", "/var/run/docker/netns/fresh")

    assert os.readlink(namespaces.path("web")) == "/var/run/docker/netns/fresh"


def test_resolve_rejects_one_sided_index_match(namespaces):
    # Container eth0 (8) claims peer 7; host veth 7 claims peer 6.
    executor = (
        FakeExecutor()
        .respond("netns exec lonely ", 0, "8: eth0@if7: <BROADCAST,MULTICAST,UP,LOWER_UP> mtu 1500\n")
        .respond("addr show type veth", 0, HOST_LINKS)
    )
    resolver = InterfaceResolver(executor, namespaces, ip_binary="ip")

    with pytest.raises(InterfaceNotFound) as excinfo:
        resolver.resolve("lonely", "/proc/1/ns/net")

    assert excinfo.value.container == "lonely"


def test_resolve_ignores_down_container_links(namespaces):
    down = "6: eth0@if7: <BROADCAST,MULTICAST> mtu 1500 state DOWN\n"
    executor = (
        FakeExecutor()
        .respond("netns exec web ", 0, down)
        .respond("addr show type veth", 0, HOST_LINKS)
    )
    resolver = InterfaceResolver(executor, namespaces, ip_binary="ip")

    with pytest.raises(InterfaceNotFound):
        resolver.resolve("web", "/proc/1/ns/net")


def test_resolve_host_network_container_is_not_found(namespaces):
    executor = (
        FakeExecutor()
        .respond("netns exec hostnet ", 0, "1: lo: <LOOPBACK,UP,LOWER_UP> mtu 65536\n")
        .respond("addr show type veth", 0, HOST_LINKS)
    )
    resolver = InterfaceResolver(executor, namespaces, ip_binary="ip")

    with pytest.raises(InterfaceNotFound):
        resolver.resolve("hostnet", "/proc/1/ns/net")


def test_resolve_returns_every_paired_link_in_host_order(namespaces):
    container_output = DB_LINKS + WEB_LINKS
    executor = (
        FakeExecutor()
        .respond("netns exec multi ", 0, container_output)
        .respond("addr show type veth", 0, HOST_LINKS)
    )
    resolver = InterfaceResolver(executor, namespaces, ip_binary="ip")

    assert resolver.resolve("multi", "/proc/1/ns/net") == ["veth1a2b3c4", "veth9f8e7d6"]


def test_resolve_propagates_listing_failure(namespaces):
    executor = FakeExecutor().respond("netns exec web ", 1, 'Cannot open network namespace "web"')
    resolver = InterfaceResolver(executor, namespaces, ip_binary="ip")

    with pytest.raises(CommandFailed) as excinfo:
        resolver.resolve("web", "/proc/1/ns/net")

    assert excinfo.value.command == "ip netns exec web ip addr show"
