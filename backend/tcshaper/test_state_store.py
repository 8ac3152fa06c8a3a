import os

import pytest

from .errors import StateStoreError
from .services.state_store import ReflectorStore


def test_put_get_delete(store):
    store.put("web", "ifb1a2b3c4")

    assert store.get("web") == "ifb1a2b3c4"
    assert store.delete("web") is True
    assert store.get("web") is None
    assert store.delete("web") is False


def test_put_overwrites_existing_record(store):
    store.put("web", "ifb1a2b3c4")
    store.put("web", "ifb9f8e7d6")

    assert store.list() == {"web": "ifb9f8e7d6"}


def test_list_is_sorted_by_container(store):
    store.put("web", "ifb1")
    store.put("db", "ifb2")

    assert list(store.list().items()) == [("db", "ifb2"), ("web", "ifb1")]


def test_records_survive_a_new_store_on_the_same_file(tmp_path):
    url = f"sqlite:///{tmp_path / 'state' / 'tcshaper.db'}"
    first = ReflectorStore(url)
    first.put("web", "ifb1a2b3c4")
    first.close()

    second = ReflectorStore(url)
    try:
        assert second.get("web") == "ifb1a2b3c4"
    finally:
        second.close()


def test_unreachable_database_is_reported(tmp_path):
    blocker = tmp_path / "not-a-directory"
    blocker.write_text("")

    with pytest.raises(StateStoreError):
        ReflectorStore(f"sqlite:///{blocker / 'state.db'}")


def test_namespace_link_and_unlink(namespaces):
    path = namespaces.link("web", "/var/run/docker/netns/abc")

    assert os.path.islink(path)
    assert os.readlink(path) == "/var/run/docker/netns/abc"

    namespaces.unlink("web")

    assert not os.path.lexists(path)


def test_namespace_unlink_missing_handle_raises(namespaces):
    with pytest.raises(OSError):
        namespaces.unlink("ghost")
