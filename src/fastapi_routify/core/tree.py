"""Middleware tree: named middleware addressed by directory structure.

A middlewares directory such as

    auth/
        users/
            valid-password.py
        has-account.py
    no-empty-body.py

is loaded into

    DirectoryNode("", {
        "auth": DirectoryNode("auth", {
            "users": DirectoryNode("users", {"validPassword": MiddlewareNode(...)}),
            "hasAccount": MiddlewareNode(...),
        }),
        "noEmptyBody": MiddlewareNode(...),
    })

and handed to every route and middleware factory.
"""

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Any, Union


@dataclass(frozen=True)
class MiddlewareNode:
    """Leaf holding one loaded middleware callable."""

    name: str
    middleware: Callable[..., Any]


@dataclass
class DirectoryNode:
    """Interior node mirroring one middleware directory."""

    name: str = ""
    children: dict[str, "MiddlewareTreeNode"] = field(default_factory=dict)

    def lookup(self, *segments: str) -> "MiddlewareTreeNode | None":
        """Find the node at a path of keys.

        Examples:
            tree.lookup("auth", "hasAccount") -> MiddlewareNode
            tree.lookup("auth") -> DirectoryNode
            tree.lookup("missing") -> None
        """
        node: MiddlewareTreeNode = self
        for segment in segments:
            if not isinstance(node, DirectoryNode):
                return None
            child = node.children.get(segment)
            if child is None:
                return None
            node = child
        return node

    def get(self, path: str) -> Callable[..., Any]:
        """Return the middleware at a dotted path.

        Raises:
            KeyError: If nothing is found or the path names a directory.

        Examples:
            tree.get("auth.hasAccount") -> <function has_account>
        """
        node = self.lookup(*path.split("."))
        if not isinstance(node, MiddlewareNode):
            raise KeyError(path)
        return node.middleware

    def __getitem__(self, path: str) -> Callable[..., Any]:
        return self.get(path)

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and isinstance(
            self.lookup(*path.split(".")), MiddlewareNode
        )

    def __iter__(self) -> Iterator[str]:
        return iter(self.children)

    def __len__(self) -> int:
        return len(self.children)

    def to_dict(self) -> dict[str, Any]:
        """Nested dict of keys to callables, for inspection and tests."""
        result: dict[str, Any] = {}
        for key, child in self.children.items():
            if isinstance(child, MiddlewareNode):
                result[key] = child.middleware
            else:
                result[key] = child.to_dict()
        return result


MiddlewareTreeNode = Union[DirectoryNode, MiddlewareNode]
