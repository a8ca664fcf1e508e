"""Project configuration loading for blocktags.

This module only reads `blocktags.toml` and performs light validation; it
never touches the template engine.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from blocktags.errors import BlockTagsConfigError, BlockTagsRegistryError
from blocktags.registry import TagRegistry, default_registry, validate_tag_name
from blocktags.renderer import BlockTagRenderer, EscapePolicy

CONFIG_FILENAME = "blocktags.toml"


@dataclass(frozen=True)
class PathsConfig:
    source_dir: str
    output_dir: str
    template_suffixes: list[str]


@dataclass(frozen=True)
class RenderConfig:
    escape: EscapePolicy
    autoescape: bool


@dataclass(frozen=True)
class TagConfig:
    """A `[tags.NAME]` table. `None` means the key was absent; `lang_attr = ""` removes it."""

    trim_markup: bool | None
    lang_attr: str | None


@dataclass(frozen=True)
class BlockTagsConfig:
    version: int
    paths: PathsConfig
    render: RenderConfig
    tags: dict[str, TagConfig] = field(default_factory=dict)


def find_project_root(start: Path) -> Path:
    """Walk upward from `start` (file or directory) looking for `blocktags.toml`."""

    cur = start
    try:
        if cur.is_file():
            cur = cur.parent
    except OSError:
        cur = cur.parent

    cur = cur.resolve()
    while True:
        if (cur / CONFIG_FILENAME).is_file():
            return cur
        if cur.parent == cur:
            break
        cur = cur.parent

    raise BlockTagsConfigError(
        f"Could not find {CONFIG_FILENAME} by walking upward from start path."
    )


def _as_table(value: Any, *, name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise BlockTagsConfigError(f"Expected [{name}] to be a table.")
    return value


def _as_str_list(value: Any, *, name: str) -> list[str]:
    if not isinstance(value, list) or any(not isinstance(x, str) for x in value):
        raise BlockTagsConfigError(f"Expected {name} to be a list of strings.")
    return list(value)


def _as_bool(value: Any, *, name: str) -> bool:
    if not isinstance(value, bool):
        raise BlockTagsConfigError(f"Expected {name} to be a boolean.")
    return value


def _as_int(value: Any, *, name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise BlockTagsConfigError(f"Expected {name} to be an integer.")
    return value


def _as_str(value: Any, *, name: str) -> str:
    if not isinstance(value, str):
        raise BlockTagsConfigError(f"Expected {name} to be a string.")
    return value


def _as_escape(value: Any, *, name: str) -> EscapePolicy:
    try:
        return EscapePolicy.parse(_as_str(value, name=name))
    except ValueError as e:
        raise BlockTagsConfigError(f"Invalid {name}: {e}") from e


def _load_tags(tags_tbl: dict[str, Any]) -> dict[str, TagConfig]:
    out: dict[str, TagConfig] = {}
    for tag_name, raw in tags_tbl.items():
        try:
            validate_tag_name(tag_name)
        except BlockTagsRegistryError as e:
            raise BlockTagsConfigError(f"Invalid [tags.{tag_name}]: {e}") from e
        tbl = _as_table(raw, name=f"tags.{tag_name}")

        if "trim_markup" in tbl:
            trim = _as_bool(tbl["trim_markup"], name=f"tags.{tag_name}.trim_markup")
        else:
            trim = None

        if "lang_attr" in tbl:
            lang_attr = _as_str(tbl["lang_attr"], name=f"tags.{tag_name}.lang_attr")
        else:
            lang_attr = None

        out[tag_name] = TagConfig(trim_markup=trim, lang_attr=lang_attr)
    return out


def load_config(*, root: Path | None = None, config_path: Path | None = None) -> BlockTagsConfig:
    """Load and validate `blocktags.toml`.

    If neither `root` nor `config_path` are provided, the project root is
    discovered by walking upward from the current working directory.
    """

    if config_path is None:
        if root is None:
            root = find_project_root(Path.cwd())
        config_path = root / CONFIG_FILENAME

    try:
        raw = config_path.read_bytes()
    except FileNotFoundError as e:
        raise BlockTagsConfigError(f"Missing {CONFIG_FILENAME} at: {config_path}") from e
    except OSError as e:
        raise BlockTagsConfigError(f"Failed reading config file: {config_path}") from e

    try:
        data = tomllib.loads(raw.decode("utf-8"))
    except UnicodeDecodeError as e:
        raise BlockTagsConfigError(f"Config is not valid UTF-8: {config_path}") from e
    except tomllib.TOMLDecodeError as e:
        raise BlockTagsConfigError(f"Invalid TOML in {config_path}: {e}") from e

    version = data.get("version", None)
    if version is None:
        raise BlockTagsConfigError(f"Missing required `version = 1` in {CONFIG_FILENAME}.")
    version_i = _as_int(version, name="version")
    if version_i != 1:
        raise BlockTagsConfigError(f"Unsupported config version: {version_i} (expected 1).")

    paths_tbl = _as_table(data.get("paths"), name="paths")
    render_tbl = _as_table(data.get("render"), name="render")
    tags_tbl = _as_table(data.get("tags"), name="tags")

    if "source_dir" in paths_tbl:
        source_dir = _as_str(paths_tbl["source_dir"], name="paths.source_dir")
    else:
        source_dir = "site"

    if "output_dir" in paths_tbl:
        output_dir = _as_str(paths_tbl["output_dir"], name="paths.output_dir")
    else:
        output_dir = "_site"

    if "template_suffixes" in paths_tbl:
        suffixes = _as_str_list(paths_tbl["template_suffixes"], name="paths.template_suffixes")
    else:
        suffixes = [".html", ".htm", ".md", ".txt"]

    if "escape" in render_tbl:
        escape = _as_escape(render_tbl["escape"], name="render.escape")
    else:
        escape = EscapePolicy.NONE

    if "autoescape" in render_tbl:
        autoescape = _as_bool(render_tbl["autoescape"], name="render.autoescape")
    else:
        autoescape = False

    # Validation
    if not source_dir or not output_dir:
        raise BlockTagsConfigError(
            "Invalid config: paths.source_dir and paths.output_dir must be non-empty."
        )

    if Path(source_dir) == Path(output_dir):
        raise BlockTagsConfigError(
            "Invalid config: paths.output_dir must differ from paths.source_dir."
        )

    if any(not s.startswith(".") or len(s) < 2 for s in suffixes):
        raise BlockTagsConfigError(
            "Invalid config: paths.template_suffixes entries must look like '.html'."
        )

    return BlockTagsConfig(
        version=version_i,
        paths=PathsConfig(
            source_dir=source_dir,
            output_dir=output_dir,
            template_suffixes=suffixes,
        ),
        render=RenderConfig(escape=escape, autoescape=autoescape),
        tags=_load_tags(tags_tbl),
    )


def registry_from_config(cfg: BlockTagsConfig) -> TagRegistry:
    """Stock tags, overridden or extended by `[tags.*]`, with the configured escape policy."""

    registry = default_registry()
    for name, tag in cfg.tags.items():
        base = registry.get(name).renderer if name in registry else BlockTagRenderer()
        trim = base.trim_markup if tag.trim_markup is None else tag.trim_markup
        lang_attr = base.lang_attr if tag.lang_attr is None else (tag.lang_attr or None)
        registry.register(name, BlockTagRenderer(trim_markup=trim, lang_attr=lang_attr))
    return registry.with_escape(cfg.render.escape)
