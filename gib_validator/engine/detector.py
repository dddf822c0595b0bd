# Path: gib_validator/engine/detector.py
"""
Document Type Detector

Classifies an incoming XML document without building a full tree.

Detection rules, first match wins:
- UBL namespace (urn:oasis:names:specification:ubl:schema:xsd:*) -> by root element name
- e-Archive namespace -> EARCHIVE_REPORT
- e-Ledger namespace with 'edefter' prefix -> by root name, 'defter'/'berat' by xbrli:context id
- e-Ledger namespace with 'envanter' prefix -> by root name

Entities are never resolved and the network is never touched. Parsing
stops as soon as the type is known.
"""

from io import BytesIO
from typing import Optional

from lxml import etree

from gib_validator.core.logger import get_logger
from gib_validator.exceptions import DocumentTypeDetectionError
from gib_validator.models.document_types import DocumentType
from gib_validator.constants import LOG_OUTPUT

logger = get_logger(__name__, 'engine')

NS_UBL_PREFIX = 'urn:oasis:names:specification:ubl:schema:xsd:'
NS_EARCHIVE = 'http://earsiv.efatura.gov.tr'
NS_EDEFTER = 'http://www.edefter.gov.tr'

UBL_ROOT_MAP = {
    'Invoice': DocumentType.INVOICE,
    'CreditNote': DocumentType.CREDIT_NOTE,
    'DespatchAdvice': DocumentType.DESPATCH_ADVICE,
    'ReceiptAdvice': DocumentType.RECEIPT_ADVICE,
    'ApplicationResponse': DocumentType.APPLICATION_RESPONSE,
}

CONTEXT_JOURNAL = 'journal_context'
CONTEXT_LEDGER = 'ledger_context'
CONTEXT_ASSETS = 'assets_context'

# Roots whose type depends on the first recognised xbrli:context id
_CONTEXT_TYPES = {
    'defter': {
        CONTEXT_JOURNAL: DocumentType.EDEFTER_YEVMIYE,
        CONTEXT_LEDGER: DocumentType.EDEFTER_KEBIR,
    },
    'berat': {
        CONTEXT_ASSETS: DocumentType.ENVANTER_BERAT,
        CONTEXT_JOURNAL: DocumentType.EDEFTER_BERAT,
        CONTEXT_LEDGER: DocumentType.EDEFTER_BERAT,
    },
}


def _resolve_from_root(namespace: Optional[str], prefix: Optional[str], local_name: str) -> Optional[DocumentType]:
    if namespace and namespace.startswith(NS_UBL_PREFIX):
        return UBL_ROOT_MAP.get(local_name)
    if namespace == NS_EARCHIVE:
        return DocumentType.EARCHIVE_REPORT
    if namespace == NS_EDEFTER:
        if prefix == 'edefter' and local_name == 'defterRaporu':
            return DocumentType.EDEFTER_RAPOR
        if prefix == 'envanter':
            return {
                'defter': DocumentType.ENVANTER_DEFTER,
                'berat': DocumentType.ENVANTER_BERAT,
            }.get(local_name)
    return None


class DocumentTypeDetector:
    """
    Streaming document type detection.

    Example:
        detector = DocumentTypeDetector()
        doc_type = detector.detect(xml_bytes)   # DocumentType.INVOICE
    """

    def detect(self, content: bytes) -> DocumentType:
        """
        Detect the document type.

        Raises:
            DocumentTypeDetectionError: Empty, malformed or unrecognised document
        """
        if not content:
            raise DocumentTypeDetectionError("XML content is empty")

        root_namespace = root_prefix = root_local = None
        context_types = None
        depth = 0

        parser_events = etree.iterparse(
            BytesIO(content),
            events=('start', 'end'),
            resolve_entities=False,
            no_network=True,
            load_dtd=False,
            huge_tree=False,
        )
        try:
            for event, element in parser_events:
                if event == 'end':
                    depth -= 1
                    continue
                depth += 1
                qname = etree.QName(element)

                if depth == 1:
                    root_namespace, root_prefix, root_local = qname.namespace, element.prefix, qname.localname
                    detected = _resolve_from_root(root_namespace, root_prefix, root_local)
                    if detected is not None:
                        return self._found(detected, root_namespace, root_local)
                    if root_namespace == NS_EDEFTER and root_prefix == 'edefter':
                        context_types = _CONTEXT_TYPES.get(root_local)
                    if context_types is None:
                        break
                    continue

                if qname.localname == 'context':
                    detected = context_types.get(element.get('id'))
                    if detected is not None:
                        return self._found(detected, root_namespace, root_local)
        except etree.XMLSyntaxError as e:
            raise DocumentTypeDetectionError(f"XML parse error: {e}") from e

        raise DocumentTypeDetectionError(
            "Document type could not be detected. Unrecognized namespace or root element: "
            f"namespace={root_namespace}, prefix={root_prefix}, localName={root_local}"
        )

    def _found(self, detected: DocumentType, namespace: Optional[str], local_name: str) -> DocumentType:
        logger.debug(f"{LOG_OUTPUT} Detected {detected.value} (namespace={namespace}, root={local_name})")
        return detected


__all__ = ['DocumentTypeDetector', 'NS_UBL_PREFIX', 'NS_EARCHIVE', 'NS_EDEFTER']
