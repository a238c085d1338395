"""Tests for the dwtsync command-line entry point."""
from __future__ import annotations

import io
import logging
from pathlib import Path

import pytest

from dwtsync.cli import log_process_completion, main

TEMPLATE = (
    "<html>\n<body>\n"
    '<!-- TemplateBeginEditable name="header" --><h1>Site</h1><!-- TemplateEndEditable -->\n'
    '<!-- TemplateBeginEditable name="body" --><p>Default</p><!-- TemplateEndEditable -->\n'
    '<!-- TemplateBeginEditable name="footer" --><footer>F-default</footer><!-- TemplateEndEditable -->\n'
    "</body>\n</html>\n"
)


def _instance(body: str, template_ref: str = "/Templates/main.dwt") -> str:
    return (
        f'<html><!-- InstanceBegin template="{template_ref}" codeOutsideHTMLIsLocked="false" -->\n'
        "<body>\n"
        '<!-- InstanceBeginEditable name="header" --><h1>Site</h1><!-- InstanceEndEditable -->\n'
        f'<!-- InstanceBeginEditable name="body" -->{body}<!-- InstanceEndEditable -->\n'
        "</body>\n<!-- InstanceEnd --></html>\n"
    )


@pytest.fixture
def site(tmp_path: Path) -> Path:
    (tmp_path / "Templates").mkdir()
    (tmp_path / "Templates" / "main.dwt").write_text(TEMPLATE, encoding="utf-8")
    (tmp_path / "pages").mkdir()
    (tmp_path / "pages" / "p1.html").write_text(_instance("<p>One</p>"), encoding="utf-8")
    (tmp_path / "pages" / "other.html").write_text(
        _instance("<p>Other</p>", "/Templates/other.dwt"), encoding="utf-8"
    )
    return tmp_path


def _run(site: Path, *args: str) -> int:
    return main(["--cwd", str(site), *args])


def test_requires_templates_dir(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(tmp_path, "find-instances", "Templates/main.dwt") == 1
    assert "Templates directory not found" in capsys.readouterr().err


def test_missing_template_file(site: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(site, "update-all", "Templates/nope.dwt", "--auto-apply") == 1
    assert "Template file not found" in capsys.readouterr().err


def test_find_instances(site: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(site, "find-instances", "Templates/main.dwt") == 0
    out = capsys.readouterr().out
    assert "Found 1 instance(s)" in out
    assert "1. pages/p1.html" in out
    assert "other.html" not in out


def test_update_all_auto_apply_then_restore(site: Path, capsys: pytest.CaptureFixture[str]) -> None:
    page = site / "pages" / "p1.html"
    before = page.read_bytes()

    assert _run(site, "update-all", "Templates/main.dwt", "--auto-apply") == 0
    assert b"F-default" in page.read_bytes()
    assert (site / ".html-dwt-template-backups" / "last_backup.json").is_file()
    assert "1 applied" in capsys.readouterr().out

    assert _run(site, "restore-backup", "--yes") == 0
    assert page.read_bytes() == before
    assert "Backup restored successfully (1 file(s))." in capsys.readouterr().out


def test_no_backup_flag(site: Path) -> None:
    assert _run(site, "update-all", "Templates/main.dwt", "--auto-apply", "--no-backup") == 0
    assert not (site / ".html-dwt-template-backups").exists()


def test_restore_without_backup(site: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(site, "restore-backup", "--yes") == 0
    assert "No backup information found." in capsys.readouterr().out


def test_restore_declined(site: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    page = site / "pages" / "p1.html"
    assert _run(site, "update-all", "Templates/main.dwt", "--auto-apply") == 0
    updated = page.read_bytes()

    monkeypatch.setattr("sys.stdin", io.StringIO("n\n"))
    assert _run(site, "restore-backup") == 2
    assert page.read_bytes() == updated


def test_interactive_skip_of_single_instance(site: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    page = site / "pages" / "p1.html"
    before = page.read_bytes()
    monkeypatch.setattr("sys.stdin", io.StringIO("3\n"))
    assert _run(site, "sync", "Templates/main.dwt", "--instance", "pages/p1.html") == 3
    assert page.read_bytes() == before


def test_interactive_apply(site: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("sys.stdin", io.StringIO("1\n"))
    assert _run(site, "sync", "Templates/main.dwt") == 0
    assert b"F-default" in (site / "pages" / "p1.html").read_bytes()


def test_interactive_cancel(site: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("sys.stdin", io.StringIO("4\n"))
    assert _run(site, "sync", "Templates/main.dwt") == 2


def test_instance_of_other_template_is_safety_skipped(site: Path) -> None:
    before = (site / "pages" / "other.html").read_bytes()
    assert _run(site, "sync", "Templates/main.dwt", "--instance", "pages/other.html") == 4
    assert (site / "pages" / "other.html").read_bytes() == before


def test_create_page(site: Path) -> None:
    assert _run(site, "create-page", "Templates/main.dwt", "--output", "pages/new.html") == 0
    text = (site / "pages" / "new.html").read_text(encoding="utf-8")
    assert '<!-- InstanceBegin template="/Templates/main.dwt"' in text
    assert "<footer>F-default</footer>" in text

    assert _run(site, "create-page", "Templates/main.dwt", "--output", "pages/new.html") == 4
    assert _run(
        site, "create-page", "Templates/main.dwt", "--output", "pages/new.html", "--force"
    ) == 0


def test_create_page_requires_output(site: Path) -> None:
    assert _run(site, "create-page", "Templates/main.dwt") == 1


def test_show_regions(site: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(site, "show-regions", "pages/p1.html") == 0
    out = capsys.readouterr().out
    assert "Bound to template: /Templates/main.dwt" in out
    assert "1. header" in out
    assert "2. body" in out

    assert _run(site, "show-regions", "Templates/main.dwt") == 0
    assert "3. footer" in capsys.readouterr().out


def test_show_regions_plain_file(site: Path, capsys: pytest.CaptureFixture[str]) -> None:
    (site / "plain.html").write_text("<html></html>", encoding="utf-8")
    assert _run(site, "show-regions", "plain.html") == 0
    assert "does not appear to be" in capsys.readouterr().out


def test_log_process_completion(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO, logger="dwtsync"):
        assert log_process_completion("cli:test", 2) == 2
    assert "Process completed (cli:test) with error code -> 2" in caplog.text
