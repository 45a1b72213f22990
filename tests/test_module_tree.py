import pytest

from fnsplit.errors import DuplicateFunctionError
from fnsplit.parser.module_tree import ModuleTree


class TestModuleTree:
    """Arena-backed namespace tree."""

    def test_insert_creates_intermediate_nodes(self):
        tree = ModuleTree()
        tree.insert(("a", "b"), "c", "fn-c")

        assert tree.children(()) == ["a"]
        assert tree.children(("a",)) == ["b"]
        assert tree.functions(("a", "b")) == ["fn-c"]
        assert tree.get(("a", "b"), "c") == "fn-c"
        assert tree.node(("a", "b")).path == ("a", "b")

    def test_parent_indices(self):
        tree = ModuleTree()
        tree.insert(("a", "b"), "c", 1)
        b = tree.node(("a", "b"))
        a = tree.nodes[b.parent]
        assert a.name == "a"
        assert tree.nodes[a.parent].name == ""

    def test_find_missing(self):
        tree = ModuleTree()
        assert tree.find(("nope",)) is None
        assert tree.get(("nope",), "x") is None
        with pytest.raises(KeyError):
            tree.node(("nope",))

    def test_same_name_different_paths(self):
        tree = ModuleTree()
        tree.insert(("a",), "run", 1)
        tree.insert(("b",), "run", 2)
        assert tree.get(("a",), "run") == 1
        assert tree.get(("b",), "run") == 2
        assert len(tree) == 2

    def test_shadowing_is_rejected(self):
        tree = ModuleTree()
        tree.insert(("a",), "run", 1)
        with pytest.raises(DuplicateFunctionError) as info:
            tree.insert(("a",), "run", 2)
        assert info.value.path == "a.run"

    def test_function_and_module_name_clash(self):
        tree = ModuleTree()
        tree.insert(("a",), "b", 1)
        with pytest.raises(DuplicateFunctionError):
            tree.insert(("a", "b"), "c", 2)

        other = ModuleTree()
        other.insert(("a", "b"), "c", 1)
        with pytest.raises(DuplicateFunctionError):
            other.insert(("a",), "b", 2)

    def test_walk_is_preorder_in_insertion_order(self):
        tree = ModuleTree()
        tree.insert(("x",), "f", 1)
        tree.insert(("a", "b"), "g", 2)
        tree.insert(("a",), "h", 3)
        assert [node.path for node in tree.walk()] == [(), ("x",), ("a",), ("a", "b")]

    def test_has_functions_below(self):
        tree = ModuleTree()
        tree.insert(("a", "b"), "c", 1)
        assert tree.has_functions_below(0)
        assert tree.has_functions_below(tree.find(("a",)))
        tree._ensure(("empty",))
        assert not tree.has_functions_below(tree.find(("empty",)))
