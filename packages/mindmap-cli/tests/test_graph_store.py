"""Tests for the in-memory graph store: id generation, link rules, cascade, search."""

import pytest

from mindmap.core.graph_store import GraphStore, LinkRejected
from mindmap.core.models import PALETTE, Node


@pytest.fixture
def store():
    return GraphStore()


@pytest.fixture
def abc(store):
    """Three nodes a, b, c with a single link a-b."""
    store.add_node("Alpha", tags=["work"], node_id="a")
    store.add_node("Beta", tags=["home", "ideas"], node_id="b")
    store.add_node("Gamma release notes", node_id="c")
    store.add_link("a", "b")
    return store


class TestNodeIds:
    def test_generated_ids_are_distinct(self, store):
        ids = [store.add_node(f"n{i}").id for i in range(5)]
        assert ids == ["note1", "note2", "note3", "note4", "note5"]
        assert len(set(ids)) == 5

    def test_gap_is_reused(self, store):
        for _ in range(3):
            store.add_node()
        store.remove_node("note2")
        assert store.suggest_id() == "note2"
        assert store.add_node().id == "note2"

    def test_custom_prefix(self):
        store = GraphStore(id_prefix="idea")
        assert store.add_node().id == "idea1"

    def test_explicit_id_taken_is_refused(self, store):
        store.add_node(node_id="x")
        version = store.version
        assert store.add_node(node_id="x") is None
        assert store.add_node(node_id="   ") is None
        assert store.version == version
        assert len(store.nodes) == 1


class TestAddNode:
    def test_fields_are_kept(self, store):
        node = store.add_node("Hello", tags=["#Work", "work", " ideas "], color=PALETTE[2])
        assert node.content == "Hello"
        assert node.tags == ["Work", "work", "ideas"]
        assert node.color == PALETTE[2]

    def test_duplicate_tags_collapse(self, store):
        node = store.add_node(tags=["a", "#a", "", "b"])
        assert node.tags == ["a", "b"]

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"content": 42},
            {"tags": ["ok", 3]},
            {"color": "#000000"},
        ],
    )
    def test_structurally_invalid_input_is_a_no_op(self, store, kwargs):
        assert store.add_node(**kwargs) is None
        assert store.nodes == []
        assert store.version == 0

    def test_none_content_becomes_empty(self, store):
        assert store.add_node(None).content == ""


class TestLinks:
    def test_self_link_rejected_without_mutation(self, abc):
        before = (abc.links, abc.version)
        with pytest.raises(LinkRejected) as excinfo:
            abc.add_link("a", "a")
        assert excinfo.value.reason == LinkRejected.SELF_LINK
        assert (abc.links, abc.version) == before

    def test_duplicate_rejected_in_either_direction(self, abc):
        for source, target in (("a", "b"), ("b", "a")):
            with pytest.raises(LinkRejected) as excinfo:
                abc.add_link(source, target)
            assert excinfo.value.reason == LinkRejected.DUPLICATE
        assert len(abc.links) == 1

    def test_unknown_target_rejected(self, abc):
        with pytest.raises(LinkRejected) as excinfo:
            abc.add_link("a", "missing")
        assert excinfo.value.reason == LinkRejected.UNKNOWN_NODE
        assert "missing" in excinfo.value.message
        assert len(abc.links) == 1

    def test_unknown_source_rejected(self, abc):
        with pytest.raises(LinkRejected):
            abc.add_link("ghost", "a")

    def test_object_endpoints_are_collapsed_to_ids(self, abc):
        link = abc.add_link({"id": "b"}, abc.get_node("c"))
        assert (link.source, link.target) == ("b", "c")

    def test_whitespace_is_trimmed_from_both_endpoints(self, abc):
        with pytest.raises(LinkRejected) as excinfo:
            abc.add_link(" a ", "b")
        assert excinfo.value.reason == LinkRejected.DUPLICATE
        with pytest.raises(LinkRejected) as excinfo:
            abc.add_link(" c", "c ")
        assert excinfo.value.reason == LinkRejected.SELF_LINK

        link = abc.add_link(" b\t", " c ")
        assert (link.source, link.target) == ("b", "c")

    def test_remove_link_either_direction(self, abc):
        assert abc.remove_link("b", "a") is True
        assert abc.links == []
        assert abc.remove_link("a", "b") is False

    def test_degree_and_neighbors(self, abc):
        abc.add_link("c", "a")
        assert abc.degree("a") == 2
        assert abc.degree("b") == 1
        assert sorted(abc.neighbors("a")) == ["b", "c"]
        assert abc.degree("nope") == 0


class TestRemoveNode:
    def test_cascade_removes_incident_links(self, abc):
        abc.add_link("b", "c")
        assert abc.remove_node("b") is True
        assert not abc.has_node("b")
        assert all(not link.touches("b") for link in abc.links)
        assert abc.links == []

    def test_absent_id_is_ignored(self, abc):
        version = abc.version
        assert abc.remove_node("zzz") is False
        assert abc.version == version

    def test_link_then_remove_scenario(self, store):
        store.add_node(node_id="A")
        store.add_node(node_id="B")
        store.add_link("A", "B")
        store.remove_node("A")
        assert [n.id for n in store.nodes] == ["B"]
        assert store.links == []


class TestSearch:
    def test_blank_term_matches_all(self, abc):
        assert len(abc.search("")) == 3
        assert len(abc.search("   ")) == 3
        assert len(abc.search(None)) == 3

    def test_matches_tags_case_insensitively(self, abc):
        assert [n.id for n in abc.search("WORK")] == ["a"]

    def test_leading_marker_is_ignored(self, abc):
        assert [n.id for n in abc.search("#ide")] == ["b"]

    def test_matches_content(self, abc):
        assert [n.id for n in abc.search("release")] == ["c"]

    def test_no_match(self, abc):
        assert abc.search("nothing-here") == []


class TestEditing:
    def test_edit_content_only(self, abc):
        assert abc.edit_node_content("a", "Changed") is True
        node = abc.get_node("a")
        assert node.content == "Changed"
        assert node.tags == ["work"]

    def test_edit_unknown_node(self, abc):
        assert abc.edit_node_content("zzz", "x") is False

    def test_set_position_is_not_a_change(self, abc):
        version = abc.version
        abc.set_position("a", 10.0, 20.0)
        node = abc.get_node("a")
        assert (node.x, node.y) == (10.0, 20.0)
        assert abc.version == version


class TestNotifications:
    def test_listeners_receive_new_version(self, store):
        seen = []
        store.subscribe(seen.append)
        store.add_node(node_id="a")
        store.add_node(node_id="b")
        store.add_link("a", "b")
        assert seen == [1, 2, 3]

    def test_noop_mutations_do_not_notify(self, abc):
        seen = []
        abc.subscribe(seen.append)
        abc.edit_node_content("a", "Alpha")
        abc.remove_link("a", "c")
        abc.add_node(color="not-a-color")
        assert seen == []

    def test_unsubscribe(self, store):
        seen = []
        store.subscribe(seen.append)
        store.unsubscribe(seen.append)
        store.add_node()
        assert seen == []


class TestReplace:
    def test_invalid_records_are_dropped(self, store):
        store.replace(
            [{"id": "a"}, {"id": "b", "content": None, "tags": None}, {"id": "a", "content": "dup"}],
            [
                {"source": "a", "target": "b"},
                {"source": {"id": "b"}, "target": {"id": "a"}},
                {"source": "a", "target": "a"},
                {"source": "a", "target": "ghost"},
            ],
        )
        assert [n.id for n in store.nodes] == ["a", "b"]
        assert store.get_node("a").content == ""
        assert store.get_node("b").tags == []
        assert [(l.source, l.target) for l in store.links] == [("a", "b")]

    def test_snapshot_is_detached(self, abc):
        snapshot = abc.snapshot()
        snapshot.nodes[0].content = "mutated"
        assert abc.get_node("a").content == "Alpha"
        assert snapshot.version == abc.version

    def test_replace_copies_node_objects(self, store):
        original = Node(id="a", content="x")
        store.replace([original], [])
        original.content = "changed elsewhere"
        assert store.get_node("a").content == "x"

    def test_clear(self, abc):
        abc.clear()
        assert abc.nodes == [] and abc.links == []
