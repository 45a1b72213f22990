from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, Iterator, Sequence, TypeVar

from ..errors import DuplicateFunctionError

T = TypeVar("T")

ROOT = 0


@dataclass(slots=True)
class ModuleNode(Generic[T]):
    name: str
    parent: int | None
    path: tuple[str, ...]
    children: dict[str, int] = field(default_factory=dict)
    functions: dict[str, T] = field(default_factory=dict)


class ModuleTree(Generic[T]):
    """Namespace tree stored as an arena of nodes addressed by index.

    Node 0 is the unnamed root.  A name may appear once per node, either as a
    child module or as a function leaf.
    """

    def __init__(self) -> None:
        self.nodes: list[ModuleNode[T]] = [ModuleNode(name="", parent=None, path=())]

    def insert(self, path: Sequence[str], name: str, item: T) -> int:
        index = self._ensure(path)
        node = self.nodes[index]
        if name in node.functions or name in node.children:
            raise DuplicateFunctionError(".".join((*node.path, name)))
        node.functions[name] = item
        return index

    def find(self, path: Sequence[str]) -> int | None:
        index = ROOT
        for segment in path:
            child = self.nodes[index].children.get(segment)
            if child is None:
                return None
            index = child
        return index

    def node(self, path: Sequence[str]) -> ModuleNode[T]:
        index = self.find(path)
        if index is None:
            raise KeyError(".".join(path))
        return self.nodes[index]

    def children(self, path: Sequence[str]) -> list[str]:
        return list(self.node(path).children)

    def functions(self, path: Sequence[str]) -> list[T]:
        return list(self.node(path).functions.values())

    def get(self, path: Sequence[str], name: str) -> T | None:
        index = self.find(path)
        if index is None:
            return None
        return self.nodes[index].functions.get(name)

    def walk(self, index: int = ROOT) -> Iterator[ModuleNode[T]]:
        """Pre-order traversal in insertion order."""
        node = self.nodes[index]
        yield node
        for child in node.children.values():
            yield from self.walk(child)

    def has_functions_below(self, index: int) -> bool:
        return any(node.functions for node in self.walk(index))

    def __len__(self) -> int:
        return sum(len(node.functions) for node in self.nodes)

    def _ensure(self, path: Sequence[str]) -> int:
        index = ROOT
        for segment in path:
            node = self.nodes[index]
            if segment in node.functions:
                raise DuplicateFunctionError(".".join((*node.path, segment)))
            child = node.children.get(segment)
            if child is None:
                child = len(self.nodes)
                self.nodes.append(
                    ModuleNode(name=segment, parent=index, path=(*node.path, segment))
                )
                node.children[segment] = child
            index = child
        return index
