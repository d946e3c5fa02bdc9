"""Level-based tree reconstruction shared by every tree-shaped section."""

from typing import Protocol, TypeVar

from calindex.core.exceptions import MalformedHierarchyError


class HierarchyItem(Protocol):
    level: int
    children: list


T = TypeVar("T", bound=HierarchyItem)


def build_hierarchy(
    items: list[T],
    root_level: int = 0,
    section: str | None = None,
) -> list[T]:
    """Build parent-child hierarchy based on item levels.

    Items are attached in order: each item becomes a child of the nearest
    preceding item with a lower level. An item whose level drops back to
    ``root_level`` starts a new root.

    Args:
        items: Flat, source-ordered items with ``level`` and ``children``
        root_level: Level of top-level items
        section: Section name used in error messages

    Returns:
        The root items, with children attached in source order

    Raises:
        MalformedHierarchyError: If a non-root item has no open ancestor
    """
    roots: list[T] = []
    stack: list[T] = []

    for item in items:
        # Find parent: first item in stack with lower level
        while stack and stack[-1].level >= item.level:
            stack.pop()

        if stack:
            stack[-1].children.append(item)
        elif item.level <= root_level:
            roots.append(item)
        else:
            raise MalformedHierarchyError(
                f"item at level {item.level} has no parent",
                section=section,
            )

        # Push current item as potential parent
        stack.append(item)

    return roots


def levels_from_columns(columns: list[int]) -> list[int]:
    """Convert opening-brace columns into nesting levels.

    A level is the number of still-open ancestors at a smaller column, so
    only relative indentation matters, not the indent width.
    """
    levels = []
    open_columns: list[int] = []
    for column in columns:
        while open_columns and open_columns[-1] >= column:
            open_columns.pop()
        levels.append(len(open_columns))
        open_columns.append(column)
    return levels


def flatten_hierarchy(roots: list[T]) -> list[T]:
    """Return all nodes in pre-order."""
    result: list[T] = []
    stack = list(reversed(roots))
    while stack:
        node = stack.pop()
        result.append(node)
        stack.extend(reversed(node.children))
    return result
