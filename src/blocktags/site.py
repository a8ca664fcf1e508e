"""Render a source tree of templates into an output directory."""

from __future__ import annotations

import logging
import shutil
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path

from jinja2 import Environment, FileSystemLoader

from blocktags.errors import BlockTagsBuildError
from blocktags.extension import create_environment
from blocktags.registry import TagRegistry

logger = logging.getLogger("blocktags.site")


@dataclass(slots=True)
class BuildReport:
    rendered: list[Path] = field(default_factory=list)
    copied: list[Path] = field(default_factory=list)
    failed: dict[Path, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


def site_environment(
    source_dir: Path, registry: TagRegistry | None = None, *, autoescape: bool = False
) -> Environment:
    """Environment whose loader resolves includes and layouts relative to `source_dir`."""

    return create_environment(
        registry,
        autoescape=autoescape,
        loader=FileSystemLoader(str(source_dir)),
        keep_trailing_newline=True,
    )


def is_hidden(rel: Path) -> bool:
    """`_layouts/base.html`, `.git/config` and friends are never emitted."""

    return any(part.startswith(("_", ".")) for part in rel.parts)


def iter_site_files(source_dir: Path, *, exclude: Iterable[Path] = ()) -> Iterator[Path]:
    """Yield publishable files under `source_dir` as relative paths, sorted."""

    excluded = [p.resolve() for p in exclude]
    for path in sorted(source_dir.rglob("*")):
        if not path.is_file():
            continue
        resolved = path.resolve()
        if any(resolved.is_relative_to(ex) for ex in excluded):
            continue
        rel = path.relative_to(source_dir)
        if is_hidden(rel):
            continue
        yield rel


def build_site(
    source_dir: Path,
    output_dir: Path,
    environment: Environment,
    *,
    template_suffixes: Iterable[str] = (".html", ".htm", ".md", ".txt"),
) -> BuildReport:
    """Render templates and copy everything else from `source_dir` into `output_dir`.

    A template error only fails its own file; the rest of the tree is still
    written. Missing or unreadable directories raise `BlockTagsBuildError`.
    """

    if not source_dir.is_dir():
        raise BlockTagsBuildError(f"Source directory does not exist: {source_dir}")

    suffixes = {s.lower() for s in template_suffixes}
    report = BuildReport()

    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise BlockTagsBuildError(f"Cannot create output directory {output_dir}: {e}") from e

    for rel in iter_site_files(source_dir, exclude=[output_dir]):
        dest = output_dir / rel
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            if rel.suffix.lower() in suffixes:
                template = environment.get_template(rel.as_posix())
                dest.write_text(template.render(), encoding="utf-8")
                report.rendered.append(rel)
                logger.debug("rendered %s", rel)
            else:
                shutil.copy2(source_dir / rel, dest)
                report.copied.append(rel)
                logger.debug("copied %s", rel)
        except (OSError, UnicodeDecodeError) as e:
            report.failed[rel] = f"{type(e).__name__}: {e}"
            logger.warning("failed writing %s: %s", rel, e)
        except Exception as e:  # noqa: BLE001 - template code may raise anything
            # Only this file fails; the rest of the tree is still written.
            report.failed[rel] = f"{type(e).__name__}: {e}"
            logger.warning("failed rendering %s: %s", rel, e)

    logger.info(
        "built %s: %d rendered, %d copied, %d failed",
        output_dir,
        len(report.rendered),
        len(report.copied),
        len(report.failed),
    )
    return report
