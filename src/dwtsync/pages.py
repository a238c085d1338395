"""Create a new instance page from a template."""
from __future__ import annotations

import re
from pathlib import Path

from dwtsync.config import SyncConfig
from dwtsync.doc_types import TemplateDocument
from dwtsync.merge import assemble, place_binding, place_binding_end

INSTANCE_END_COMMENT = "<!-- InstanceEnd -->"

_LOCK_RE = re.compile(
    r'<!--\s*TemplateInfo\b[^>]*?codeOutsideHTMLIsLocked\s*=\s*"([^"]*)"',
    re.IGNORECASE,
)


def binding_comment(template_ref: str, *, locked: str = "false") -> str:
    return f'<!-- InstanceBegin template="{template_ref}" codeOutsideHTMLIsLocked="{locked}" -->'


def template_ref_for(config: SyncConfig, template_path: Path) -> str:
    """Site-absolute reference stored in ``InstanceBegin``, e.g. ``/Templates/main.dwt``."""
    try:
        rel = template_path.resolve().relative_to(config.site_root.resolve())
    except ValueError:
        return template_path.name
    return "/" + rel.as_posix()


def create_page(template: TemplateDocument, template_ref: str) -> str:
    """Instance text with every region holding its template default.

    Merging the result against the same template reproduces it unchanged.
    """
    assembly, _ = assemble(template, {}, {p.name: p for p in template.params})
    lock = _LOCK_RE.search(template.text)
    place_binding_end(assembly, INSTANCE_END_COMMENT)
    place_binding(
        assembly,
        binding_comment(template_ref, locked=lock.group(1) if lock else "false"),
    )
    return assembly.text()
