from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

from blocktags.errors import (
    BlockTagsBuildError,
    BlockTagsConfigError,
    BlockTagsError,
    BlockTagsRegistryError,
)
from blocktags.extension import BlockTagExtension, create_environment, install, render_string
from blocktags.registry import TagEntry, TagRegistry, default_registry
from blocktags.renderer import (
    LABEL,
    LANG,
    BlockTagRenderer,
    EscapePolicy,
    render_label,
    render_lang,
)


def _package_version() -> str:
    try:
        return version("blocktags")
    except PackageNotFoundError:
        # Running from a source checkout, or otherwise not installed.
        return "0.0.0"


__version__ = _package_version()

__all__ = [
    "LABEL",
    "LANG",
    "BlockTagExtension",
    "BlockTagRenderer",
    "BlockTagsBuildError",
    "BlockTagsConfigError",
    "BlockTagsError",
    "BlockTagsRegistryError",
    "EscapePolicy",
    "TagEntry",
    "TagRegistry",
    "__version__",
    "create_environment",
    "default_registry",
    "install",
    "render_label",
    "render_lang",
    "render_string",
]
