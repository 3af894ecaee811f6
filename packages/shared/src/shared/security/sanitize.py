from __future__ import annotations

import html
import re

_TAG_PATTERN = re.compile(r"<[^>]*>")


def strip_html_tags(value: str) -> str:
    """Plain text of a provider instruction such as ``Turn <b>left</b>``."""
    return html.unescape(_TAG_PATTERN.sub("", value)).strip()


def sanitize_html_text(value: str) -> str:
    return html.escape(value.strip(), quote=True)
