from __future__ import annotations

from familytree.mutate import create_person, set_parent_child, set_spouse
from familytree.store import MemoryPersonStore
from familytree.subgraph import (
    _forward_targets,
    build_reverse_index,
    connected_component,
    resolve_user_subgraph,
)


def test_spouse_added_by_other_user_is_included(store: MemoryPersonStore) -> None:
    alice = create_person(store, {"name": "Alice"}, created_by="user1").id
    bob = create_person(store, {"name": "Bob"}, created_by="user2").id
    create_person(store, {"name": "Stranger"}, created_by="user3")
    set_spouse(store, alice, bob)

    members = resolve_user_subgraph(store, "user1")

    assert set(members) == {alice, bob}


def test_reverse_only_edges_are_followed(store: MemoryPersonStore, load) -> None:
    # Seed has no forward links at all; both relatives point at it.
    load("seed", created_by="u")
    load("kid", parent_id="seed")
    load("partner", spouse_id="seed")
    load("grandkid", parent_id="kid")
    load("unrelated")

    members = resolve_user_subgraph(store, "u")

    assert set(members) == {"seed", "kid", "partner", "grandkid"}


def test_subgraph_keeps_store_order(store: MemoryPersonStore, load) -> None:
    load("b", parent_id="a")
    load("a", created_by="u")
    load("c", parent_id="a")
    assert list(resolve_user_subgraph(store, "u")) == ["b", "a", "c"]


def test_unknown_user_gets_empty_subgraph(store: MemoryPersonStore, load) -> None:
    load("a", created_by="u")
    assert resolve_user_subgraph(store, "nobody") == {}
    assert resolve_user_subgraph(store, "") == {}


def test_dangling_references_are_skipped(store: MemoryPersonStore, load) -> None:
    load("a", created_by="u", parent_id="gone", spouse_id="also-gone", children=["missing"])
    assert set(resolve_user_subgraph(store, "u")) == {"a"}


def test_result_is_closed_under_expansion(store: MemoryPersonStore) -> None:
    ids = [create_person(store, {"name": f"P{i}"}, created_by="u" if i == 0 else "other").id for i in range(6)]
    set_parent_child(store, ids[0], ids[1])
    set_spouse(store, ids[1], ids[2])
    set_parent_child(store, ids[2], ids[3])
    # ids[4] and ids[5] form a separate family.
    set_spouse(store, ids[4], ids[5])

    people = store.all_people()
    members = resolve_user_subgraph(store, "u")
    assert set(members) == set(ids[:4])

    reverse = build_reverse_index(people)
    for pid in members:
        reachable = set(_forward_targets(people[pid])) | reverse.get(pid, set())
        assert {r for r in reachable if r in people} <= set(members)


def test_connected_component_ignores_unknown_seeds(load, store: MemoryPersonStore) -> None:
    load("a")
    assert connected_component(store.all_people(), ["missing"]) == set()


def test_reverse_index_skips_self_links(load, store: MemoryPersonStore) -> None:
    load("a", parent_id="a", spouse_id="b", children=["c", "a"])
    assert build_reverse_index(store.all_people()) == {"b": {"a"}, "c": {"a"}}
