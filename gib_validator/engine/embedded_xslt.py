# Path: gib_validator/engine/embedded_xslt.py
"""
Embedded XSLT Extraction

UBL-TR documents may carry their own rendering stylesheet as a base64
attachment under cac:AdditionalDocumentReference. The first attachment
whose filename ends in .xsl or .xslt is used.
"""

import base64
import binascii
from typing import Optional

from lxml import etree

from gib_validator.core.logger import get_logger
from gib_validator.constants import LEGACY_TEMPLATE_ENCODING

logger = get_logger(__name__, 'engine')

NS_CAC = 'urn:oasis:names:specification:ubl:schema:xsd:CommonAggregateComponents-2'
NS_CBC = 'urn:oasis:names:specification:ubl:schema:xsd:CommonBasicComponents-2'

_ATTACHMENT_PATH = 'cac:AdditionalDocumentReference/cac:Attachment/cbc:EmbeddedDocumentBinaryObject'
_NAMESPACES = {'cac': NS_CAC, 'cbc': NS_CBC}
_XSLT_SUFFIXES = ('.xsl', '.xslt')


def decode_template(data: bytes) -> str:
    """UTF-8, falling back to the legacy Turkish code page."""
    try:
        return data.decode('utf-8')
    except UnicodeDecodeError:
        return data.decode(LEGACY_TEMPLATE_ENCODING, errors='replace')


def extract_embedded_xslt(document: bytes) -> Optional[str]:
    """
    Stylesheet text embedded in a UBL document, or None.

    None covers every failure: unparseable document, no XSLT attachment,
    undecodable base64.
    """
    parser = etree.XMLParser(no_network=True, resolve_entities=False, huge_tree=True)
    try:
        root = etree.fromstring(document, parser)
    except etree.XMLSyntaxError as e:
        logger.debug(f"Embedded XSLT lookup skipped, document not parseable: {e}")
        return None

    for attachment in root.iterfind(_ATTACHMENT_PATH, _NAMESPACES):
        filename = (attachment.get('filename') or '').strip().lower()
        if not filename.endswith(_XSLT_SUFFIXES):
            continue
        payload = ''.join((attachment.text or '').split())
        try:
            raw = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            logger.warning(f"Embedded XSLT '{filename}' is not valid base64: {e}")
            return None
        if not raw:
            return None
        logger.debug(f"Embedded XSLT found: {filename} ({len(raw)} bytes)")
        return decode_template(raw)
    return None


__all__ = ['extract_embedded_xslt', 'decode_template', 'NS_CAC', 'NS_CBC']
