"""
fieldpack/patcher.py
════════════════════

Apply suggested fixes to source text.

Edits are applied back to front so earlier offsets stay valid. Overlapping
edits are rejected; identical duplicates (the same fix reported twice) are
applied once.

Files are patched byte for byte outside the edited ranges: line endings and
a leading byte order mark are written back as they were read.
"""

from __future__ import annotations

import codecs
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Sequence

from fieldpack.checkers import Diagnostic, TextEdit
from fieldpack.errors import PatchError

logger = logging.getLogger(__name__)


def apply_edits(text: str, edits: Iterable[TextEdit]) -> str:
    """Return ``text`` with every edit applied."""
    ordered = sorted(set(edits), key=lambda e: (e.start, e.end))
    for prev, cur in zip(ordered, ordered[1:]):
        if cur.start < prev.end:
            raise PatchError(
                f"overlapping edits at offsets {prev.start}-{prev.end} "
                f"and {cur.start}-{cur.end}"
            )
    for edit in ordered:
        if not 0 <= edit.start <= edit.end <= len(text):
            raise PatchError(
                f"edit {edit.start}-{edit.end} outside of text "
                f"of length {len(text)}"
            )
    for edit in reversed(ordered):
        text = text[:edit.start] + edit.new_text + text[edit.end:]
    return text


def edits_by_file(diagnostics: Sequence[Diagnostic]) -> Dict[str, List[TextEdit]]:
    """Group the edits of every fix carried by ``diagnostics`` by file."""
    grouped: Dict[str, List[TextEdit]] = {}
    for diag in diagnostics:
        for fix in diag.fixes:
            for edit in fix.edits:
                grouped.setdefault(edit.file or diag.location.file, []).append(edit)
    return grouped


def apply_fixes(diagnostics: Sequence[Diagnostic]) -> List[str]:
    """
    Rewrite the affected files in place.

    Returns the paths that were changed. Each file is validated completely
    before it is written, so a :class:`PatchError` leaves it untouched.
    """
    changed = []
    for path, edits in edits_by_file(diagnostics).items():
        target = Path(path)
        data = target.read_bytes()
        bom = codecs.BOM_UTF8 if data.startswith(codecs.BOM_UTF8) else b""
        original = data[len(bom):].decode("utf-8")
        patched = apply_edits(original, edits)
        if patched != original:
            target.write_bytes(bom + patched.encode("utf-8"))
            logger.info("%s: applied %d edit(s)", path, len(edits))
            changed.append(path)
    return changed


__all__ = ["apply_edits", "apply_fixes", "edits_by_file"]
