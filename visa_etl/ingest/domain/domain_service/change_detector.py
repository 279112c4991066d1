import difflib
import hashlib
from typing import Optional

from ..value_objects.load_outcome import DiffSummary

MAX_PREVIEWS = 10
PREVIEW_CHARS = 200


def content_hash(html: str) -> str:
    """sha256 hex digest of the UTF-8 bytes"""
    return hashlib.sha256((html or '').encode('utf-8')).hexdigest()


def url_hash(url: str) -> str:
    return hashlib.sha256(url.encode('utf-8')).hexdigest()


def _preview(marker: str, line: str, preview_chars: int) -> str:
    if len(line) > preview_chars:
        return f"{marker} {line[:preview_chars]}..."
    return f"{marker} {line}"


def generate_diff_summary(
    old_text: Optional[str],
    new_text: Optional[str],
    max_previews: int = MAX_PREVIEWS,
    preview_chars: int = PREVIEW_CHARS,
) -> DiffSummary:
    """
    Line based diff of two page texts.

    Counts every added and removed line; keeps the first max_previews of
    them as "+ line" / "- line" previews, each cut to preview_chars.
    """
    old_lines = (old_text or '').splitlines()
    new_lines = (new_text or '').splitlines()

    added = removed = 0
    changes = []
    matcher = difflib.SequenceMatcher(None, old_lines, new_lines, autojunk=False)

    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == 'equal':
            continue
        if tag in ('replace', 'delete'):
            for line in old_lines[i1:i2]:
                removed += 1
                if len(changes) < max_previews:
                    changes.append(_preview('-', line, preview_chars))
        if tag in ('replace', 'insert'):
            for line in new_lines[j1:j2]:
                added += 1
                if len(changes) < max_previews:
                    changes.append(_preview('+', line, preview_chars))

    return DiffSummary(added_lines=added, removed_lines=removed, changes=changes)
