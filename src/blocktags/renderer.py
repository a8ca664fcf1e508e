"""The code-block fragment renderer.

A block tag wraps its body in a fixed container:

    <div class="code-block"><div class="language-tag">LABEL</div><pre class="code-block-inner">BODY</pre></div>

Variants differ only in whether the label is stripped and in an optional
`lang` attribute on the `pre` element.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from markupsafe import escape as escape_html


class EscapePolicy(str, Enum):
    NONE = "none"
    MARKUP = "markup"
    ALL = "all"

    @classmethod
    def parse(cls, value: str) -> EscapePolicy:
        try:
            return cls(value.strip().lower())
        except ValueError:
            choices = ", ".join(p.value for p in cls)
            raise ValueError(
                f"unknown escape policy {value!r} (expected one of: {choices})"
            ) from None


@dataclass(frozen=True, slots=True)
class BlockTagRenderer:
    """Render one block tag invocation into an HTML fragment.

    `render` is pure: it never raises for string input and keeps no state
    between calls.
    """

    trim_markup: bool = False
    lang_attr: str | None = None
    escape: EscapePolicy = EscapePolicy.NONE

    def render(self, markup: str, body: str) -> str:
        label = markup.strip() if self.trim_markup else markup
        if self.escape is not EscapePolicy.NONE:
            label = str(escape_html(label))
        if self.escape is EscapePolicy.ALL:
            # Markup bodies (autoescaped output) are already safe and pass through.
            body = str(escape_html(body))

        pre_attrs = ' class="code-block-inner"'
        if self.lang_attr:
            pre_attrs += f' lang="{escape_html(self.lang_attr)}"'

        return (
            '<div class="code-block">'
            f'<div class="language-tag">{label}</div>'
            f"<pre{pre_attrs}>{body}</pre>"
            "</div>"
        )

    def with_escape(self, policy: EscapePolicy) -> BlockTagRenderer:
        return BlockTagRenderer(
            trim_markup=self.trim_markup, lang_attr=self.lang_attr, escape=policy
        )


LABEL = BlockTagRenderer(trim_markup=True)
LANG = BlockTagRenderer(trim_markup=False, lang_attr="shell")


def render_label(markup: str, body: str) -> str:
    """Render a `label` block: stripped label, plain `pre`."""

    return LABEL.render(markup, body)


def render_lang(markup: str, body: str) -> str:
    """Render a `lang` block: label as given, `pre` marked `lang="shell"`."""

    return LANG.render(markup, body)
