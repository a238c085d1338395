"""Tests for dwtsync.pages."""
from __future__ import annotations

from pathlib import Path

from dwtsync.config import SyncConfig
from dwtsync.document import build_instance, build_template
from dwtsync.merge import merge
from dwtsync.pages import binding_comment, create_page, template_ref_for

TEMPLATE = (
    "<html>\n<head>\n"
    '<!-- TemplateBeginEditable name="doctitle" --><title>Untitled</title><!-- TemplateEndEditable -->\n'
    "</head>\n<body>\n"
    '<!-- TemplateBeginEditable name="main" --><p>Default</p><!-- TemplateEndEditable -->\n'
    "</body>\n</html>\n"
)


def test_create_page_layout() -> None:
    template = build_template(TEMPLATE, "Templates/main.dwt").value
    page = create_page(template, "/Templates/main.dwt")
    assert page == (
        '<html><!-- InstanceBegin template="/Templates/main.dwt" codeOutsideHTMLIsLocked="false" -->\n'
        "<head>\n"
        '<!-- InstanceBeginEditable name="doctitle" --><title>Untitled</title><!-- InstanceEndEditable -->\n'
        "</head>\n<body>\n"
        '<!-- InstanceBeginEditable name="main" --><p>Default</p><!-- InstanceEndEditable -->\n'
        "</body>\n<!-- InstanceEnd --></html>\n"
    )


def test_created_page_is_already_in_sync() -> None:
    template = build_template(TEMPLATE, "Templates/main.dwt").value
    page = create_page(template, "/Templates/main.dwt")
    instance = build_instance(page).value
    assert instance.bound_template_name == "main.dwt"
    result = merge(template, instance)
    assert result.new_text == page
    assert {c.status for c in result.changes} == {"unchanged"}


def test_lock_flag_taken_from_template_info() -> None:
    text = TEMPLATE.replace(
        "<html>\n", '<html>\n<!-- TemplateInfo codeOutsideHTMLIsLocked="true" -->\n', 1
    )
    page = create_page(build_template(text).value, "/Templates/main.dwt")
    assert 'codeOutsideHTMLIsLocked="true"' in page
    assert "TemplateInfo" not in page


def test_template_without_html_tag() -> None:
    template = build_template(
        '<!-- TemplateBeginEditable name="a" -->x<!-- TemplateEndEditable -->'
    ).value
    page = create_page(template, "/Templates/frag.dwt")
    assert page.startswith(binding_comment("/Templates/frag.dwt"))
    assert page.endswith("<!-- InstanceEnd -->")


def test_template_ref_for(tmp_path: Path) -> None:
    config = SyncConfig(site_root=tmp_path)
    assert template_ref_for(config, tmp_path / "Templates" / "main.dwt") == "/Templates/main.dwt"
    assert template_ref_for(config, Path("/elsewhere/x.dwt")) == "x.dwt"
