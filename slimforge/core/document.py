"""Format-preserving structured document for TOML build configuration.

``TomlDocument`` wraps a tomlkit tree. Reads and writes address a single
node by key path; siblings, comments, key order, and untouched tables are
never rebuilt, so rendering an unedited document reproduces the input
byte for byte. The one exception is an inline table that gains a key,
which is re-emitted with normalised spacing.
"""

from __future__ import annotations

from collections.abc import MutableMapping, Sequence
from pathlib import Path
from typing import Any

import tomlkit
from tomlkit.exceptions import TOMLKitError
from tomlkit.items import InlineTable, Table

from slimforge.core.errors import ConfigParseError

KeyPath = Sequence[str]

_MISSING = object()


class TomlDocument:
    """Typed accessors over a parsed TOML document."""

    def __init__(self, doc: tomlkit.TOMLDocument, path: Path | None = None) -> None:
        self._doc = doc
        self._path = path

    @classmethod
    def parse(cls, text: str, path: Path | None = None) -> TomlDocument:
        """Parse *text*; raises ``ConfigParseError`` if it is not valid TOML."""
        try:
            return cls(tomlkit.parse(text), path)
        except TOMLKitError as exc:
            raise ConfigParseError(f"Malformed TOML ({exc})", path) from exc

    @classmethod
    def load(cls, path: Path) -> TomlDocument:
        return cls.parse(Path(path).read_text(encoding="utf-8"), Path(path))

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get(self, key_path: KeyPath, default: Any = None) -> Any:
        """Return the plain Python value at *key_path*, or *default*."""
        node = self._lookup(key_path)
        if node is _MISSING:
            return default
        return _unwrap(node)

    def has(self, key_path: KeyPath) -> bool:
        return self._lookup(key_path) is not _MISSING

    def _lookup(self, key_path: KeyPath) -> Any:
        node: Any = self._doc
        for key in key_path:
            if not isinstance(node, MutableMapping) or key not in node:
                return _MISSING
            node = node[key]
        return node

    def to_dict(self) -> dict[str, Any]:
        """The whole document as plain Python containers."""
        return self._doc.unwrap()

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def set(self, key_path: KeyPath, value: Any) -> None:
        """Set the node at *key_path*, creating missing parent tables.

        Raises ``ConfigParseError`` if a parent exists but is not a table.
        """
        if not key_path:
            raise ValueError("key_path must not be empty")
        parents, leaf = list(key_path[:-1]), key_path[-1]

        node: Any = self._doc
        owner: Any = None
        created: Table | None = None
        for depth, key in enumerate(parents):
            if key not in node:
                # Only the direct parent of the leaf gets its own header;
                # intermediate tables render as dotted super-tables.
                is_leaf_parent = depth == len(parents) - 1
                node[key] = tomlkit.table(is_super_table=not is_leaf_parent)
                if is_leaf_parent:
                    created = node[key]
            child = node[key]
            if not isinstance(child, MutableMapping):
                dotted = ".".join(parents[: depth + 1])
                raise ConfigParseError(f"'{dotted}' is not a table", self._path)
            owner, node = node, child

        if isinstance(node, InlineTable) and leaf not in node:
            # A parsed inline table glues appended keys on with a bare ",".
            rebuilt = tomlkit.inline_table()
            rebuilt.update({key: _unwrap(item) for key, item in node.items()})
            rebuilt[leaf] = value
            owner[parents[-1]] = rebuilt
            return

        node[leaf] = value
        if created is not None and self._followed_by_table(parents[0]):
            # Later keys are inserted ahead of this trailing blank line.
            created.add(tomlkit.nl())

    def _followed_by_table(self, top_key: str) -> bool:
        """True if another top-level table renders after *top_key*'s table."""
        keys = list(self._doc.keys())
        return top_key in keys and keys.index(top_key) < len(keys) - 1

    # ------------------------------------------------------------------
    # Render
    # ------------------------------------------------------------------

    def render(self) -> str:
        return tomlkit.dumps(self._doc)


def _unwrap(node: Any) -> Any:
    unwrap = getattr(node, "unwrap", None)
    return unwrap() if callable(unwrap) else node
