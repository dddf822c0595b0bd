# Path: gib_validator/engine/watermark.py
"""
Watermark Overlay

Inserts a repeated, rotated text overlay into rendered HTML.

The stylesheet goes right after the first <head> tag; the overlay divs
go right before </body>. Output without a </body> tag is returned untouched.
"""

import html
import re
from typing import Tuple

from gib_validator.constants import DEFAULT_WATERMARK_REPEAT

_HEAD_OPEN = re.compile(r'<head(\s[^>]*)?>', re.IGNORECASE)
_BODY_CLOSE = re.compile(r'</body>', re.IGNORECASE)

WATERMARK_STYLE = (
    '<style>'
    '.watermark{position:absolute;transform:rotate(-45deg);transform-origin:left top;'
    'font-size:2rem;color:red;z-index:999;pointer-events:none;opacity:0.3;}'
    '</style>'
)


def _overlay(text: str, repeat: int) -> str:
    count = max(1, repeat)
    width = 100 // count
    left = 10
    escaped = html.escape(text, quote=True).replace('&#x27;', "'")
    divs = []
    for _ in range(count):
        divs.append(f'<div class="watermark" style="top: 40%; left: {left}%;">{escaped}</div>')
        divs.append(f'<div class="watermark" style="bottom: 50%; left: {left}%; top: 90%">{escaped}</div>')
        left += width - 4
    return ''.join(divs)


def apply_watermark(content: str, text: str, repeat: int = DEFAULT_WATERMARK_REPEAT) -> Tuple[str, bool]:
    """
    Returns:
        (html, applied)
    """
    body_close = None
    for body_close in _BODY_CLOSE.finditer(content):
        pass
    if body_close is None:
        return content, False

    result = content[:body_close.start()] + _overlay(text, repeat) + content[body_close.start():]
    head_open = _HEAD_OPEN.search(result)
    if head_open:
        result = result[:head_open.end()] + WATERMARK_STYLE + result[head_open.end():]
    return result, True


__all__ = ['apply_watermark', 'WATERMARK_STYLE']
