from __future__ import annotations

import pytest

from familytree.errors import InvalidRelationship, NotFound
from familytree.mutate import (
    RelationshipKind,
    add_second_parent,
    create_person,
    delete_person_detached,
    link_siblings,
    remove_relationship,
    set_parent_child,
    set_spouse,
)
from familytree.store import MemoryPersonStore


def _new(store: MemoryPersonStore, name: str, user: str = "user1") -> str:
    return create_person(store, {"name": name}, created_by=user).id


class TestCreatePerson:
    def test_first_person_per_user_is_root(self, store: MemoryPersonStore) -> None:
        first = create_person(store, {"name": "Alice"}, created_by="user1")
        second = create_person(store, {"name": "Bob"}, created_by="user1")
        other_user = create_person(store, {"name": "Zed"}, created_by="user2")
        assert first.is_root is True
        assert second.is_root is False
        assert other_user.is_root is True

    def test_relationship_fields_in_request_are_ignored(self, store: MemoryPersonStore, load) -> None:
        load("existing")
        p = create_person(
            store,
            {"name": "New", "parent_id": "existing", "spouse_id": "existing", "children": ["existing"]},
            created_by="user1",
        )
        assert p.parent_id is None
        assert p.spouse_id is None
        assert p.children == []
        assert store.get_person("existing").children == []

    def test_name_required(self, store: MemoryPersonStore) -> None:
        with pytest.raises(InvalidRelationship):
            create_person(store, {"name": "   "}, created_by="user1")


class TestSetParentChild:
    def test_parent_and_children_mirror(self, store: MemoryPersonStore) -> None:
        p = _new(store, "Parent")
        c = _new(store, "Child")
        set_parent_child(store, p, c)
        assert store.get_person(c).parent_id == p
        assert c in store.get_person(p).children

    def test_repeat_does_not_duplicate_child(self, store: MemoryPersonStore) -> None:
        p = _new(store, "Parent")
        c = _new(store, "Child")
        set_parent_child(store, p, c)
        set_parent_child(store, p, c)
        assert store.get_person(p).children == [c]

    def test_moving_child_drops_it_from_previous_parent(self, store: MemoryPersonStore) -> None:
        old = _new(store, "Old")
        new = _new(store, "New")
        c = _new(store, "Child")
        set_parent_child(store, old, c)

        set_parent_child(store, new, c)

        assert store.get_person(c).parent_id == new
        assert store.get_person(new).children == [c]
        assert store.get_person(old).children == []

    def test_moving_child_away_from_missing_parent(self, store: MemoryPersonStore, load) -> None:
        load("c", parent_id="gone")
        load("p")
        set_parent_child(store, "p", "c")
        assert store.get_person("c").parent_id == "p"

    def test_self_as_parent_rejected_before_write(self, store: MemoryPersonStore) -> None:
        p = _new(store, "Solo")
        with pytest.raises(InvalidRelationship):
            set_parent_child(store, p, p)
        solo = store.get_person(p)
        assert solo.parent_id is None
        assert solo.children == []

    def test_missing_child(self, store: MemoryPersonStore) -> None:
        p = _new(store, "Parent")
        with pytest.raises(NotFound):
            set_parent_child(store, p, "ghost")
        assert store.get_person(p).children == []


class TestSetSpouse:
    def test_links_both_sides(self, store: MemoryPersonStore) -> None:
        alice = _new(store, "Alice")
        bob = _new(store, "Bob")
        set_spouse(store, alice, bob)
        assert store.get_person(alice).spouse_id == bob
        assert store.get_person(bob).spouse_id == alice
        assert store.get_person(alice).relation == "spouse"

    def test_overwrites_existing_spouse_silently(self, store: MemoryPersonStore) -> None:
        a = _new(store, "A")
        b = _new(store, "B")
        c = _new(store, "C")
        set_spouse(store, a, b)
        set_spouse(store, a, c)
        assert store.get_person(a).spouse_id == c
        assert store.get_person(c).spouse_id == a
        # B keeps its stale one-sided link until repair runs.
        assert store.get_person(b).spouse_id == a

    def test_self_spouse_rejected(self, store: MemoryPersonStore) -> None:
        a = _new(store, "A")
        with pytest.raises(InvalidRelationship):
            set_spouse(store, a, a)


class TestAddSecondParent:
    def test_second_parent_linked_through_primary_spouse(self, store: MemoryPersonStore) -> None:
        carol = _new(store, "Carol")
        dave = _new(store, "Dave")
        erin = _new(store, "Erin")
        set_parent_child(store, carol, dave)

        add_second_parent(store, dave, carol, erin)

        assert store.get_person(dave).parent_id == carol
        assert dave in store.get_person(erin).children
        assert store.get_person(carol).spouse_id == erin
        assert store.get_person(erin).spouse_id == carol

    def test_adopts_first_parent_when_child_has_none(self, store: MemoryPersonStore) -> None:
        first = _new(store, "First")
        child = _new(store, "Child")
        second = _new(store, "Second")

        add_second_parent(store, child, first, second)

        assert store.get_person(child).parent_id == first
        assert child in store.get_person(first).children
        assert child in store.get_person(second).children

    def test_keeps_existing_primary_parent(self, store: MemoryPersonStore) -> None:
        original = _new(store, "Original")
        child = _new(store, "Child")
        other = _new(store, "Other")
        second = _new(store, "Second")
        set_parent_child(store, original, child)

        add_second_parent(store, child, other, second)

        assert store.get_person(child).parent_id == original
        assert child not in store.get_person(other).children

    def test_operands_must_be_distinct(self, store: MemoryPersonStore) -> None:
        a = _new(store, "A")
        b = _new(store, "B")
        with pytest.raises(InvalidRelationship):
            add_second_parent(store, a, b, b)
        with pytest.raises(InvalidRelationship):
            add_second_parent(store, a, a, b)


class TestRemoveRelationship:
    def test_parent_child_inverse(self, store: MemoryPersonStore) -> None:
        p = _new(store, "Parent")
        c = _new(store, "Child")
        set_parent_child(store, p, c)

        assert remove_relationship(store, "parent-child", p, c) is True

        assert store.get_person(c).parent_id != p
        assert c not in store.get_person(p).children

    def test_parent_child_does_not_clear_foreign_parent(self, store: MemoryPersonStore, load) -> None:
        load("p", children=["c"])
        load("q", children=["c"])
        load("c", parent_id="q")

        remove_relationship(store, "parent-child", "p", "c")

        assert store.get_person("c").parent_id == "q"
        assert store.get_person("p").children == []

    @pytest.mark.parametrize("kind", ["parent-child", "spouse", "second-parent"])
    def test_removal_is_idempotent(self, store: MemoryPersonStore, kind: str) -> None:
        p = _new(store, "P")
        c = _new(store, "C")
        s = _new(store, "S")
        set_parent_child(store, p, c)
        add_second_parent(store, c, p, s)
        first, second = {"parent-child": (p, c), "spouse": (p, s), "second-parent": (s, c)}[kind]

        remove_relationship(store, kind, first, second)
        after_once = {pid: person.to_dict() for pid, person in store.all_people().items()}
        assert remove_relationship(store, kind, first, second) is False
        after_twice = {pid: person.to_dict() for pid, person in store.all_people().items()}
        assert after_once == after_twice

    def test_spouse_only_clears_matching_sides(self, store: MemoryPersonStore, load) -> None:
        load("a", spouse_id="b")
        load("b", spouse_id="c")
        load("c", spouse_id="b")

        assert remove_relationship(store, RelationshipKind.SPOUSE, "a", "b") is True

        assert store.get_person("a").spouse_id is None
        assert store.get_person("b").spouse_id == "c"

    def test_second_parent_undoes_proxy_link(self, store: MemoryPersonStore) -> None:
        carol = _new(store, "Carol")
        dave = _new(store, "Dave")
        erin = _new(store, "Erin")
        set_parent_child(store, carol, dave)
        add_second_parent(store, dave, carol, erin)

        assert remove_relationship(store, "second-parent", erin, dave) is True

        assert dave not in store.get_person(erin).children
        assert store.get_person(carol).spouse_id is None
        assert store.get_person(erin).spouse_id is None
        assert store.get_person(dave).parent_id == carol

    def test_unknown_kind(self, store: MemoryPersonStore) -> None:
        a = _new(store, "A")
        b = _new(store, "B")
        with pytest.raises(InvalidRelationship):
            remove_relationship(store, "cousin", a, b)

    def test_missing_member(self, store: MemoryPersonStore) -> None:
        a = _new(store, "A")
        with pytest.raises(NotFound):
            remove_relationship(store, "spouse", a, "ghost")


class TestLinkSiblings:
    def test_attaches_parentless_sibling(self, store: MemoryPersonStore) -> None:
        p = _new(store, "Parent")
        a = _new(store, "A")
        b = _new(store, "B")
        set_parent_child(store, p, a)

        assert link_siblings(store, a, b) is True

        assert store.get_person(b).parent_id == p
        assert store.get_person(p).children == [a, b]

    def test_already_siblings(self, store: MemoryPersonStore) -> None:
        p = _new(store, "Parent")
        a = _new(store, "A")
        b = _new(store, "B")
        set_parent_child(store, p, a)
        set_parent_child(store, p, b)
        assert link_siblings(store, b, a) is False

    def test_needs_a_parent(self, store: MemoryPersonStore) -> None:
        a = _new(store, "A")
        b = _new(store, "B")
        with pytest.raises(InvalidRelationship):
            link_siblings(store, a, b)

    def test_conflicting_parents(self, store: MemoryPersonStore) -> None:
        p1 = _new(store, "P1")
        p2 = _new(store, "P2")
        a = _new(store, "A")
        b = _new(store, "B")
        set_parent_child(store, p1, a)
        set_parent_child(store, p2, b)
        with pytest.raises(InvalidRelationship):
            link_siblings(store, a, b)


class TestDeleteDetached:
    def test_clears_every_reference(self, store: MemoryPersonStore) -> None:
        p = _new(store, "Parent")
        c = _new(store, "Child")
        s = _new(store, "Spouse")
        set_parent_child(store, p, c)
        set_spouse(store, p, s)

        detached = delete_person_detached(store, p)

        assert detached == 2
        assert store.get_person(p) is None
        assert store.get_person(c).parent_id is None
        assert store.get_person(s).spouse_id is None

    def test_removes_from_children_lists(self, store: MemoryPersonStore, load) -> None:
        load("p", children=["c", "d"])
        load("c")
        load("d")
        delete_person_detached(store, "c")
        assert store.get_person("p").children == ["d"]

    def test_missing(self, store: MemoryPersonStore) -> None:
        with pytest.raises(NotFound):
            delete_person_detached(store, "ghost")
