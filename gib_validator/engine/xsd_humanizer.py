# Path: gib_validator/engine/xsd_humanizer.py
"""
XSD Error Humanizer

Rewrites libxml2 schema validation messages into short, readable text.

libxml2 messages use Clark notation ({namespace-uri}LocalName) and long
expected-element lists. This module strips namespaces, shortens lists and
maps the common message families to plain wording. Messages that match no
known family are returned with namespaces stripped.
"""

import re
from typing import List, Optional

from gib_validator.constants import MAX_HUMANIZED_LIST_ITEMS

_CLARK = re.compile(r'\{[^{}\s]*\}(?=[A-Za-z_])')

_NOT_EXPECTED = re.compile(
    r"^Element '(?P<element>[^']+)': This element is not expected\."
    r"(?: Expected is(?: one of)? \( (?P<expected>[^)]*) \)\.)?"
)
_MISSING_CHILD = re.compile(
    r"^Element '(?P<element>[^']+)': Missing child element\(s\)\."
    r"(?: Expected is(?: one of)? \( (?P<expected>[^)]*) \)\.)?"
)
_ATOMIC_TYPE = re.compile(
    r"^Element '(?P<element>[^']+)'(?:, attribute '(?P<attribute>[^']+)')?: "
    r"'(?P<value>[^']*)' is not a valid value of the (?:local )?atomic type(?: '(?P<type>[^']+)')?\."
)
_ENUMERATION = re.compile(
    r"^Element '(?P<element>[^']+)'(?:, attribute '(?P<attribute>[^']+)')?: \[facet 'enumeration'\] "
    r"The value '(?P<value>[^']*)' is not an element of the set \{(?P<values>.*)\}\."
)
_LENGTH = re.compile(
    r"^Element '(?P<element>[^']+)'(?:, attribute '(?P<attribute>[^']+)')?: \[facet '(?P<facet>maxLength|minLength|length)'\] "
    r"The value(?: '[^']*')? has a length of '(?P<actual>\d+)'; this (?:exceeds|underruns|differs from) "
    r"the allowed (?:maximum |minimum )?length of '(?P<limit>\d+)'\."
)
_PATTERN = re.compile(
    r"^Element '(?P<element>[^']+)'(?:, attribute '(?P<attribute>[^']+)')?: \[facet 'pattern'\] "
    r"The value '(?P<value>[^']*)' is not accepted by the pattern '(?P<pattern>.*)'\."
)
_ATTRIBUTE_NOT_ALLOWED = re.compile(
    r"^Element '(?P<element>[^']+)', attribute '(?P<attribute>[^']+)': The attribute '[^']+' is not allowed\."
)
_ATTRIBUTE_MISSING = re.compile(
    r"^Element '(?P<element>[^']+)': The attribute '(?P<attribute>[^']+)' is required but missing\."
)
_TEXT_NOT_ALLOWED = re.compile(
    r"^Element '(?P<element>[^']+)': Character content other than whitespace is not allowed"
)
_NO_DECLARATION = re.compile(
    r"^Element '(?P<element>[^']+)': No matching global declaration available for the validation root\."
)

FRIENDLY_TYPES = {
    'decimal': 'decimal number',
    'integer': 'integer',
    'int': 'integer',
    'long': 'integer',
    'nonNegativeInteger': 'non-negative integer',
    'positiveInteger': 'positive integer',
    'boolean': 'true/false',
    'date': 'date (YYYY-MM-DD)',
    'dateTime': 'date-time (YYYY-MM-DDThh:mm:ss)',
    'time': 'time (hh:mm:ss)',
    'gYear': 'year (YYYY)',
    'normalizedString': 'text',
    'string': 'text',
    'token': 'text',
    'base64Binary': 'base64 content',
    'anyURI': 'URI',
}


def strip_namespaces(message: Optional[str]) -> Optional[str]:
    """'{urn:x}Invoice' -> 'Invoice'."""
    if message is None:
        return None
    return _CLARK.sub('', message)


def shorten_list(items: List[str], limit: int = MAX_HUMANIZED_LIST_ITEMS) -> str:
    if len(items) <= limit:
        return ', '.join(items)
    return f"{', '.join(items[:limit])} (+{len(items) - limit} more)"


def _split_expected(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [item.strip() for item in raw.split(',') if item.strip()]


def _friendly_type(type_name: Optional[str]) -> str:
    if not type_name:
        return 'the declared type'
    local = type_name.split(':')[-1]
    return FRIENDLY_TYPES.get(local, local)


def _subject(element: str, attribute: Optional[str]) -> str:
    if attribute:
        return f"Attribute '{attribute}' of element '{element}'"
    return f"Element '{element}'"


def humanize(message: str, line: Optional[int] = None, column: Optional[int] = None) -> str:
    """
    Readable form of one libxml2 schema validation message.

    Args:
        message: Raw libxml2 message
        line: 1-based line number, prefixed when given
        column: Column number, prefixed together with line
    """
    text = strip_namespaces(message or '').strip()
    friendly = _humanize_text(text)
    if line:
        prefix = f"Line {line}, Column {column}" if column else f"Line {line}"
        return f"{prefix}: {friendly}"
    return friendly


def _humanize_text(text: str) -> str:
    match = _NOT_EXPECTED.match(text)
    if match:
        expected = _split_expected(match.group('expected'))
        result = f"Element '{match.group('element')}' is not expected here (wrong order or unknown element)."
        if expected:
            result += f" Expected: {shorten_list(expected)}."
        return result

    match = _MISSING_CHILD.match(text)
    if match:
        expected = _split_expected(match.group('expected'))
        result = f"Element '{match.group('element')}' is missing a required child element."
        if expected:
            result += f" Expected: {shorten_list(expected)}."
        return result

    match = _ENUMERATION.match(text)
    if match:
        allowed = [v.strip() for v in match.group('values').split(',') if v.strip()]
        return (f"{_subject(match.group('element'), match.group('attribute'))} has value "
                f"'{match.group('value')}', which is not allowed. Allowed values: {shorten_list(allowed)}.")

    match = _LENGTH.match(text)
    if match:
        subject = _subject(match.group('element'), match.group('attribute'))
        facet, actual, limit = match.group('facet'), match.group('actual'), match.group('limit')
        if facet == 'maxLength':
            return f"{subject} is too long ({actual} characters, maximum {limit})."
        if facet == 'minLength':
            return f"{subject} is too short ({actual} characters, minimum {limit})."
        return f"{subject} must be exactly {limit} characters long (found {actual})."

    match = _PATTERN.match(text)
    if match:
        return (f"{_subject(match.group('element'), match.group('attribute'))} has value "
                f"'{match.group('value')}', which does not match the required format '{match.group('pattern')}'.")

    match = _ATOMIC_TYPE.match(text)
    if match:
        return (f"{_subject(match.group('element'), match.group('attribute'))} has invalid value "
                f"'{match.group('value')}' (expected {_friendly_type(match.group('type'))}).")

    match = _ATTRIBUTE_NOT_ALLOWED.match(text)
    if match:
        return f"Attribute '{match.group('attribute')}' is not allowed on element '{match.group('element')}'."

    match = _ATTRIBUTE_MISSING.match(text)
    if match:
        return f"Element '{match.group('element')}' is missing required attribute '{match.group('attribute')}'."

    match = _TEXT_NOT_ALLOWED.match(text)
    if match:
        return f"Element '{match.group('element')}' must contain only child elements, not text."

    match = _NO_DECLARATION.match(text)
    if match:
        return f"Root element '{match.group('element')}' is not declared by the schema."

    return text


__all__ = ['humanize', 'strip_namespaces', 'shorten_list', 'FRIENDLY_TYPES']
