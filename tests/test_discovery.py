"""Tests for dwtsync.discovery."""
from __future__ import annotations

from pathlib import Path

from dwtsync.config import SyncConfig
from dwtsync.discovery import find_instances, glob_match, iter_candidate_files


def _bound(template_ref: str) -> str:
    return (
        f'<html><!-- InstanceBegin template="{template_ref}" codeOutsideHTMLIsLocked="false" -->'
        "<body></body><!-- InstanceEnd --></html>\n"
    )


def _write(site: Path, rel: str, text: str) -> None:
    path = site / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def _site(root: Path) -> Path:
    _write(root, "index.html", _bound("/Templates/main.dwt"))
    _write(root, "about/team.htm", _bound("/Templates/main.dwt"))
    _write(root, "script.php", _bound("..\\Templates\\main.dwt"))
    _write(root, "other.html", _bound("/Templates/other.dwt"))
    _write(root, "plain.html", "<html><body>no binding</body></html>\n")
    _write(root, "notes.txt", _bound("/Templates/main.dwt"))
    _write(root, "Templates/main.dwt", "<html></html>\n")
    _write(root, "Templates/copy.html", _bound("/Templates/main.dwt"))
    _write(root, ".html-dwt-template-backups/run1/index.html", _bound("/Templates/main.dwt"))
    return root


def _rel(paths: list[Path], root: Path) -> list[str]:
    return [p.relative_to(root).as_posix() for p in paths]


class TestGlobMatch:
    def test_double_star_matches_root_and_nested(self) -> None:
        assert glob_match("index.html", "**/*.html")
        assert glob_match("a/b/index.html", "**/*.html")

    def test_extension_must_match(self) -> None:
        assert not glob_match("index.htm", "**/*.html")


class TestDiscovery:
    def test_candidate_walk_skips_tool_and_template_dirs(self, tmp_path: Path) -> None:
        site = _site(tmp_path)
        rels = _rel(list(iter_candidate_files(SyncConfig(site_root=site))), site)
        assert rels == ["index.html", "other.html", "plain.html", "script.php", "about/team.htm"]

    def test_find_instances(self, tmp_path: Path) -> None:
        site = _site(tmp_path)
        found = find_instances(SyncConfig(site_root=site), site / "Templates" / "main.dwt")
        assert _rel(found, site) == ["index.html", "script.php", "about/team.htm"]

    def test_exclude_patterns(self, tmp_path: Path) -> None:
        site = _site(tmp_path)
        config = SyncConfig(site_root=site, exclude_patterns=("about/**",))
        found = find_instances(config, site / "Templates" / "main.dwt")
        assert _rel(found, site) == ["index.html", "script.php"]

    def test_no_instances(self, tmp_path: Path) -> None:
        site = _site(tmp_path)
        assert find_instances(SyncConfig(site_root=site), site / "Templates" / "none.dwt") == []
