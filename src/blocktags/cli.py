from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from jinja2 import TemplateError

from blocktags import __version__
from blocktags.errors import BlockTagsBuildError, BlockTagsConfigError, BlockTagsRegistryError
from blocktags.renderer import EscapePolicy

if TYPE_CHECKING:  # pragma: no cover
    from blocktags.config import BlockTagsConfig


EXIT_OK = 0
EXIT_CONFIG_OR_USAGE = 2
EXIT_RENDER_ERROR = 3


def _add_common_flags(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--root",
        type=str,
        default=None,
        help="Project root (defaults to searching upward from cwd for blocktags.toml).",
    )
    p.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to blocktags.toml (defaults to <root>/blocktags.toml).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="blocktags")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log each rendered and copied file."
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    render_p = subparsers.add_parser("render", help="Render one template to stdout.")
    render_p.add_argument("file", nargs="?", default=None, help="Template file (default: stdin).")
    _add_common_flags(render_p)
    render_p.add_argument(
        "--escape",
        choices=[p.value for p in EscapePolicy],
        default=None,
        help="Escape policy override (none, markup, all).",
    )
    render_p.add_argument(
        "--autoescape", action="store_true", help="Enable Jinja2 autoescaping."
    )

    build_p = subparsers.add_parser("build", help="Render the site into the output directory.")
    _add_common_flags(build_p)

    tags_p = subparsers.add_parser("tags", help="List registered block tags.")
    _add_common_flags(tags_p)

    return parser


def parse_args(argv: list[str]) -> argparse.Namespace:
    return _build_parser().parse_args(argv)


def _resolve_root_and_config(args: argparse.Namespace) -> tuple[Path | None, Path | None]:
    root = Path(args.root).resolve() if args.root else None
    config_path = Path(args.config).resolve() if args.config else None
    return root, config_path


def _load_config(args: argparse.Namespace) -> tuple[Path, BlockTagsConfig]:
    from blocktags.config import find_project_root, load_config

    root, config_path = _resolve_root_and_config(args)
    if root is None:
        root = config_path.parent if config_path is not None else find_project_root(Path.cwd())

    cfg = load_config(root=root, config_path=config_path)
    return root, cfg


def _load_config_optional(args: argparse.Namespace) -> BlockTagsConfig | None:
    # `render` and `tags` work outside a project; an explicit --root/--config must exist.
    root, config_path = _resolve_root_and_config(args)
    if root is None and config_path is None:
        from blocktags.config import find_project_root

        try:
            find_project_root(Path.cwd())
        except BlockTagsConfigError:
            return None
    return _load_config(args)[1]


def _eprint(msg: str) -> None:
    print(msg, file=sys.stderr)


def _print_error(e: BaseException) -> None:
    msg = (str(e) or repr(e)).strip()
    _eprint(f"error: {msg}")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def cmd_render(args: argparse.Namespace) -> int:
    from blocktags.config import registry_from_config
    from blocktags.extension import create_environment
    from blocktags.registry import default_registry

    try:
        cfg = _load_config_optional(args)
        registry = registry_from_config(cfg) if cfg is not None else default_registry()
        if args.escape is not None:
            registry = registry.with_escape(EscapePolicy.parse(args.escape))
        autoescape = bool(args.autoescape) or (cfg is not None and cfg.render.autoescape)

        if args.file:
            source = Path(args.file).read_text(encoding="utf-8")
        else:
            source = sys.stdin.read()

        env = create_environment(registry, autoescape=autoescape, keep_trailing_newline=True)
        sys.stdout.write(env.from_string(source).render())
        return EXIT_OK
    except (BlockTagsConfigError, BlockTagsRegistryError) as e:
        _print_error(e)
        return EXIT_CONFIG_OR_USAGE
    except (TemplateError, OSError, UnicodeDecodeError) as e:
        _print_error(e)
        return EXIT_RENDER_ERROR


def cmd_build(args: argparse.Namespace) -> int:
    from blocktags.config import registry_from_config
    from blocktags.site import build_site, site_environment

    try:
        root, cfg = _load_config(args)
        source_dir = root / cfg.paths.source_dir
        output_dir = root / cfg.paths.output_dir

        env = site_environment(
            source_dir, registry_from_config(cfg), autoescape=cfg.render.autoescape
        )
        report = build_site(
            source_dir, output_dir, env, template_suffixes=cfg.paths.template_suffixes
        )
        for rel, msg in sorted(report.failed.items()):
            _eprint(f"error: {rel}: {msg}")
        if not report.ok:
            return EXIT_RENDER_ERROR
        return EXIT_OK
    except (BlockTagsConfigError, BlockTagsRegistryError) as e:
        _print_error(e)
        return EXIT_CONFIG_OR_USAGE
    except BlockTagsBuildError as e:
        _print_error(e)
        return EXIT_RENDER_ERROR


def cmd_tags(args: argparse.Namespace) -> int:
    from blocktags.config import registry_from_config
    from blocktags.registry import default_registry

    try:
        cfg = _load_config_optional(args)
    except BlockTagsConfigError as e:
        _print_error(e)
        return EXIT_CONFIG_OR_USAGE

    registry = registry_from_config(cfg) if cfg is not None else default_registry()
    for entry in registry:
        r = entry.renderer
        lang = r.lang_attr or "-"
        trim = str(r.trim_markup).lower()
        print(f"{entry.name}\ttrim={trim}\tlang={lang}\tescape={r.escape.value}")
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    try:
        args = parse_args(list(sys.argv[1:] if argv is None else argv))
    except SystemExit as e:
        # argparse uses SystemExit for --help/--version and parse errors.
        code = e.code
        return int(code) if isinstance(code, int) else EXIT_CONFIG_OR_USAGE

    _configure_logging(bool(args.verbose))

    if args.command == "render":
        return cmd_render(args)
    if args.command == "build":
        return cmd_build(args)
    if args.command == "tags":
        return cmd_tags(args)

    return EXIT_CONFIG_OR_USAGE


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
