from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from blocktags.errors import BlockTagsRegistryError
from blocktags.renderer import LABEL, LANG, BlockTagRenderer, EscapePolicy

# Jinja2 statement names, including the bundled extensions', that a block tag may not
# shadow. Any `end*` name is also rejected since it would read as a closing tag.
RESERVED_TAG_NAMES = frozenset(
    {
        "autoescape",
        "block",
        "break",
        "call",
        "continue",
        "do",
        "elif",
        "else",
        "extends",
        "filter",
        "for",
        "from",
        "if",
        "import",
        "include",
        "macro",
        "pluralize",
        "print",
        "raw",
        "set",
        "trans",
        "with",
    }
)


@dataclass(frozen=True, slots=True)
class TagEntry:
    name: str
    renderer: BlockTagRenderer

    @property
    def end_name(self) -> str:
        return f"end{self.name}"


def validate_tag_name(name: str) -> str:
    if not isinstance(name, str) or not name.isidentifier():
        raise BlockTagsRegistryError(f"Invalid tag name: {name!r} (must be an identifier).")
    if name in RESERVED_TAG_NAMES or name.startswith("end"):
        raise BlockTagsRegistryError(f"Tag name {name!r} is reserved by the template engine.")
    return name


class TagRegistry:
    """Handler table mapping tag names to renderers.

    Owned by whoever builds the template environment; pass it to
    `blocktags.extension.install` rather than sharing a module global.
    """

    def __init__(self, entries: dict[str, BlockTagRenderer] | None = None) -> None:
        self._entries: dict[str, TagEntry] = {}
        for name, renderer in (entries or {}).items():
            self.register(name, renderer)

    def register(self, name: str, renderer: BlockTagRenderer) -> TagEntry:
        """Register a renderer under `name` (last write wins)."""

        entry = TagEntry(name=validate_tag_name(name), renderer=renderer)
        self._entries[name] = entry
        return entry

    def unregister(self, name: str) -> None:
        self._entries.pop(name, None)

    def get(self, name: str) -> TagEntry:
        try:
            return self._entries[name]
        except KeyError:
            raise BlockTagsRegistryError(f"No block tag registered as {name!r}.") from None

    def render(self, name: str, markup: str, body: str) -> str:
        return self.get(name).renderer.render(markup, body)

    def names(self) -> list[str]:
        return sorted(self._entries)

    def with_escape(self, policy: EscapePolicy) -> TagRegistry:
        """Return a copy whose renderers all use `policy`."""

        return TagRegistry(
            {name: e.renderer.with_escape(policy) for name, e in self._entries.items()}
        )

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[TagEntry]:
        return iter(self._entries[name] for name in self.names())

    def __len__(self) -> int:
        return len(self._entries)


def default_registry(*, escape: EscapePolicy = EscapePolicy.NONE) -> TagRegistry:
    """Registry holding the stock `label` and `lang` tags."""

    return TagRegistry({"label": LABEL, "lang": LANG}).with_escape(escape)
