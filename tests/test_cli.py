from __future__ import annotations

import io
import sys
from pathlib import Path

import pytest

import blocktags.cli

LABEL_RUBY = (
    '<div class="code-block"><div class="language-tag">Ruby</div>'
    '<pre class="code-block-inner">puts 1</pre></div>'
)


def _project(root: Path, config: str = "version = 1\n") -> Path:
    (root / "blocktags.toml").write_text(config, encoding="utf-8")
    site = root / "site"
    site.mkdir()
    (site / "index.html").write_text("{% label Ruby %}puts 1{% endlabel %}\n", encoding="utf-8")
    return root


def test_parse_render_defaults() -> None:
    ns = blocktags.cli.parse_args(["render"])
    assert ns.command == "render"
    assert ns.file is None
    assert ns.escape is None
    assert ns.autoescape is False
    assert ns.root is None
    assert ns.config is None
    assert ns.verbose is False


def test_parse_rejects_unknown_escape() -> None:
    with pytest.raises(SystemExit):
        blocktags.cli.parse_args(["render", "--escape", "html"])


def test_parse_rejects_removed_watch_command() -> None:
    with pytest.raises(SystemExit):
        blocktags.cli.parse_args(["watch"])


def test_main_without_command_is_usage_error() -> None:
    assert blocktags.cli.main([]) == blocktags.cli.EXIT_CONFIG_OR_USAGE


def test_render_file_outside_project(tmp_path: Path, monkeypatch, capsys) -> None:
    monkeypatch.chdir(tmp_path)
    f = tmp_path / "page.html"
    f.write_text("{% label Ruby %}puts 1{% endlabel %}\n", encoding="utf-8")

    rc = blocktags.cli.main(["render", str(f)])

    assert rc == blocktags.cli.EXIT_OK
    assert capsys.readouterr().out == LABEL_RUBY + "\n"


def test_render_stdin(tmp_path: Path, monkeypatch, capsys) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(sys, "stdin", io.StringIO("{% lang sh %}ls{% endlang %}"))

    rc = blocktags.cli.main(["render"])

    assert rc == blocktags.cli.EXIT_OK
    assert capsys.readouterr().out == (
        '<div class="code-block"><div class="language-tag">sh </div>'
        '<pre class="code-block-inner" lang="shell">ls</pre></div>'
    )


def test_render_escape_override(tmp_path: Path, monkeypatch, capsys) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(sys, "stdin", io.StringIO("{% label <b> %}<i>{% endlabel %}"))

    rc = blocktags.cli.main(["render", "--escape", "all"])

    assert rc == blocktags.cli.EXIT_OK
    out = capsys.readouterr().out
    assert '<div class="language-tag">&lt;b&gt;</div>' in out
    assert '<pre class="code-block-inner">&lt;i&gt;</pre>' in out


def test_render_uses_project_tags(tmp_path: Path, monkeypatch, capsys) -> None:
    _project(tmp_path, 'version = 1\n[tags.python]\nlang_attr = "python"\n')
    monkeypatch.chdir(tmp_path / "site")
    monkeypatch.setattr(sys, "stdin", io.StringIO("{% python %}x{% endpython %}"))

    rc = blocktags.cli.main(["render"])

    assert rc == blocktags.cli.EXIT_OK
    assert 'lang="python">x</pre>' in capsys.readouterr().out


def test_render_syntax_error(tmp_path: Path, monkeypatch, capsys) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(sys, "stdin", io.StringIO("{% label x %}unterminated"))

    rc = blocktags.cli.main(["render"])

    assert rc == blocktags.cli.EXIT_RENDER_ERROR
    assert capsys.readouterr().err.startswith("error: ")


def test_render_missing_file(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    rc = blocktags.cli.main(["render", str(tmp_path / "nope.html")])
    assert rc == blocktags.cli.EXIT_RENDER_ERROR


def test_render_bad_config(tmp_path: Path, monkeypatch, capsys) -> None:
    (tmp_path / "blocktags.toml").write_text("version = 9\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(sys, "stdin", io.StringIO(""))

    rc = blocktags.cli.main(["render"])

    assert rc == blocktags.cli.EXIT_CONFIG_OR_USAGE
    assert "Unsupported config version" in capsys.readouterr().err


def test_build(tmp_path: Path, monkeypatch) -> None:
    _project(tmp_path)
    monkeypatch.chdir(tmp_path)

    rc = blocktags.cli.main(["build"])

    assert rc == blocktags.cli.EXIT_OK
    out = (tmp_path / "_site" / "index.html").read_text(encoding="utf-8")
    assert out == LABEL_RUBY + "\n"


def test_build_with_root_flag(tmp_path: Path, monkeypatch) -> None:
    (tmp_path / "proj").mkdir()
    root = _project(tmp_path / "proj")
    monkeypatch.chdir(tmp_path)

    rc = blocktags.cli.main(["build", "--root", str(root)])

    assert rc == blocktags.cli.EXIT_OK
    assert (tmp_path / "proj" / "_site" / "index.html").exists()


def test_build_with_config_flag_uses_its_directory_as_root(tmp_path: Path, monkeypatch) -> None:
    (tmp_path / "proj").mkdir()
    root = _project(tmp_path / "proj")
    elsewhere = tmp_path / "elsewhere"
    elsewhere.mkdir()
    monkeypatch.chdir(elsewhere)

    rc = blocktags.cli.main(["build", "--config", str(root / "blocktags.toml")])

    assert rc == blocktags.cli.EXIT_OK
    assert (root / "_site" / "index.html").exists()
    assert not (elsewhere / "_site").exists()


def test_build_reports_failed_files(tmp_path: Path, monkeypatch, capsys) -> None:
    _project(tmp_path)
    (tmp_path / "site" / "bad.html").write_text("{% lang x %}", encoding="utf-8")
    monkeypatch.chdir(tmp_path)

    rc = blocktags.cli.main(["build"])

    assert rc == blocktags.cli.EXIT_RENDER_ERROR
    assert "bad.html" in capsys.readouterr().err
    assert (tmp_path / "_site" / "index.html").exists()


def test_build_missing_config(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    assert blocktags.cli.main(["build"]) == blocktags.cli.EXIT_CONFIG_OR_USAGE


def test_build_missing_source_dir(tmp_path: Path, monkeypatch, capsys) -> None:
    (tmp_path / "blocktags.toml").write_text("version = 1\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)

    rc = blocktags.cli.main(["build"])

    assert rc == blocktags.cli.EXIT_RENDER_ERROR
    assert "does not exist" in capsys.readouterr().err


def test_tags_lists_defaults(tmp_path: Path, monkeypatch, capsys) -> None:
    monkeypatch.chdir(tmp_path)

    rc = blocktags.cli.main(["tags"])

    assert rc == blocktags.cli.EXIT_OK
    lines = capsys.readouterr().out.splitlines()
    assert lines == [
        "label\ttrim=true\tlang=-\tescape=none",
        "lang\ttrim=false\tlang=shell\tescape=none",
    ]


def test_tags_lists_configured(tmp_path: Path, monkeypatch, capsys) -> None:
    _project(
        tmp_path, 'version = 1\n[render]\nescape = "markup"\n[tags.py]\nlang_attr = "python"\n'
    )
    monkeypatch.chdir(tmp_path)

    rc = blocktags.cli.main(["tags"])

    assert rc == blocktags.cli.EXIT_OK
    out = capsys.readouterr().out
    assert "py\ttrim=false\tlang=python\tescape=markup" in out


def test_build_runtime_error_returns_render_error(tmp_path: Path, monkeypatch, capsys) -> None:
    _project(tmp_path)
    (tmp_path / "site" / "div.html").write_text("{{ 1 // 0 }}", encoding="utf-8")
    monkeypatch.chdir(tmp_path)

    rc = blocktags.cli.main(["build"])

    assert rc == blocktags.cli.EXIT_RENDER_ERROR
    assert "ZeroDivisionError" in capsys.readouterr().err
    assert (tmp_path / "_site" / "index.html").exists()
