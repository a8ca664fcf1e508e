"""Jinja2 integration for registered block tags.

Usage in a template:

    {% label Ruby %}puts 1{% endlabel %}
    {% lang bash %}ls -la{% endlang %}

Jinja2 tokenizes tag arguments, which loses the author's whitespace. The
extension therefore rewrites every registered opening tag during
`preprocess` so its raw markup travels as a single string literal, then the
parser picks that literal up verbatim.
"""

from __future__ import annotations

import json
import re
from typing import Any

from jinja2 import Environment, nodes
from jinja2.ext import Extension
from jinja2.parser import Parser
from markupsafe import Markup

from blocktags.errors import BlockTagsRegistryError
from blocktags.registry import TagRegistry, default_registry


def _opening_tag_pattern(environment: Environment, names: list[str]) -> re.Pattern[str]:
    start = re.escape(environment.block_start_string)
    end = re.escape(environment.block_end_string)
    var_start = re.escape(environment.variable_start_string)
    var_end = re.escape(environment.variable_end_string)
    comment_start = re.escape(environment.comment_start_string)
    comment_end = re.escape(environment.comment_end_string)
    alternatives = "|".join(re.escape(n) for n in sorted(names, key=len, reverse=True))

    # Spans the rewrite must leave alone, tried before the tag itself.
    skip = "|".join(
        [
            rf"{start}[-+]?\s*raw\s*[-+]?{end}.*?{start}[-+]?\s*endraw\s*[-+]?{end}",
            rf"{comment_start}.*?{comment_end}",
            rf"{var_start}.*?{var_end}",
        ]
    )
    tag = (
        rf"(?P<open>{start}[-+]?\s*)(?P<name>{alternatives})(?=\s|[-+]?{end})"
        rf"(?P<sep>\s*)(?P<markup>.*?)(?P<close>[-+]?{end})"
    )
    # Any other statement is skipped whole so string literals inside it stay intact.
    other = rf"{start}.*?{end}"
    return re.compile(rf"(?P<skip>{skip})|{tag}|(?P<other>{other})", re.S)


def _as_literal(markup: str) -> str:
    # The lexer decodes string tokens with unicode-escape after backslashreplace,
    # which accepts everything json.dumps emits.
    return json.dumps(markup, ensure_ascii=False)


def quote_markup(source: str, environment: Environment, names: list[str]) -> str:
    """Rewrite `{% name <markup> %}` into `{% name "<markup>" %}` for each tag in `names`.

    The whitespace right after the tag name separates it from the markup and is
    dropped. Newlines swallowed by the literal are re-emitted inside the tag so
    template line numbers stay put.
    """

    if not names:
        return source
    pattern = _opening_tag_pattern(environment, names)

    def repl(m: re.Match[str]) -> str:
        if m.group("name") is None:
            return m.group(0)
        newlines = (m.group("sep") + m.group("markup")).count("\n")
        padding = "\n" * newlines if newlines else " "
        literal = _as_literal(m.group("markup"))
        return f"{m.group('open')}{m.group('name')} {literal}{padding}{m.group('close')}"

    return pattern.sub(repl, source)


class BlockTagExtension(Extension):
    """Expose every tag of the environment's `TagRegistry` as a block tag."""

    def __init__(self, environment: Environment) -> None:
        super().__init__(environment)
        environment.extend(block_tag_registry=default_registry())

    @property
    def registry(self) -> TagRegistry:
        return self.environment.block_tag_registry  # type: ignore[attr-defined]

    @property
    def tags(self) -> set[str]:  # type: ignore[override]
        return set(self.registry.names())

    def preprocess(self, source: str, name: str | None, filename: str | None = None) -> str:
        return quote_markup(source, self.environment, self.registry.names())

    def parse(self, parser: Parser) -> nodes.Node:
        token = next(parser.stream)
        tag = token.value
        if parser.stream.current.type == "string":
            markup = next(parser.stream).value
        else:
            markup = ""
        body = parser.parse_statements((f"name:end{tag}",), drop_needle=True)
        call = self.call_method("_render_block", [nodes.Const(tag), nodes.Const(markup)])
        return nodes.CallBlock(call, [], [], body).set_lineno(token.lineno)

    def _render_block(self, tag: str, markup: str, caller: Any) -> Markup:
        return Markup(self.registry.render(tag, markup, caller()))


def install(environment: Environment, registry: TagRegistry | None = None) -> Environment:
    """Register `registry`'s tags on `environment` and return it.

    Call once while setting up the environment, before any template is
    compiled; templates already in the cache keep the tags they were parsed with.
    """

    if registry is None:
        registry = default_registry()

    claimed: set[str] = set()
    for ext in environment.iter_extensions():
        if not isinstance(ext, BlockTagExtension):
            claimed.update(ext.tags)
    clash = claimed & set(registry.names())
    if clash:
        names = ", ".join(sorted(clash))
        raise BlockTagsRegistryError(f"Tag names already claimed by another extension: {names}")

    if BlockTagExtension.identifier not in environment.extensions:
        environment.add_extension(BlockTagExtension)
    environment.block_tag_registry = registry  # type: ignore[attr-defined]
    return environment


def create_environment(
    registry: TagRegistry | None = None,
    *,
    autoescape: bool = False,
    **options: Any,
) -> Environment:
    """Build a Jinja2 environment with the block tags installed."""

    return install(Environment(autoescape=autoescape, **options), registry)


def render_string(source: str, registry: TagRegistry | None = None, **context: Any) -> str:
    """Render a template string using a fresh environment."""

    return create_environment(registry).from_string(source).render(**context)
