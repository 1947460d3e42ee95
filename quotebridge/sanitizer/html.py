"""HTML normalization for AI-generated action plans.

The consuming UI renders the markup through a component framework that
expects ``className`` attributes and explicitly closed void elements.
"""

from __future__ import annotations

import re

_CLASS_ATTR = re.compile(r"(?<![\w-])class=")
_VOID_TAG = re.compile(r"<(img|br|hr|input)\b([^>]*?)/?>", re.IGNORECASE)


def prepare_html(content: str | None) -> str:
    """Rename ``class`` attributes and self-close void tags.

    Idempotent: running the result through again returns it unchanged.
    """
    if not content:
        return ""
    processed = _CLASS_ATTR.sub("className=", content)
    return _VOID_TAG.sub(r"<\1\2/>", processed)
