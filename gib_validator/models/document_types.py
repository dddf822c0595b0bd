# Path: gib_validator/models/document_types.py
"""
Document Type Enumerations and Mappings

The fixed vocabulary of GIB documents and the assets that validate
or render them.

Categories:
1. DocumentType - what the detector classifies a document as
2. SchemaValidationType - which XSD family validates it
3. SchematronValidationType - which rule set validates it
4. TransformType - which default template renders it
"""

from enum import Enum
from typing import Dict, Optional


# ==============================================================================
# DOCUMENT TYPE
# ==============================================================================

class DocumentType(Enum):
    """
    Detected document kinds.

    UBL-TR: INVOICE .. APPLICATION_RESPONSE
    e-Archive: EARCHIVE_REPORT
    e-Ledger: EDEFTER_* and ENVANTER_*
    """
    INVOICE = 'INVOICE'
    CREDIT_NOTE = 'CREDIT_NOTE'
    DESPATCH_ADVICE = 'DESPATCH_ADVICE'
    RECEIPT_ADVICE = 'RECEIPT_ADVICE'
    APPLICATION_RESPONSE = 'APPLICATION_RESPONSE'
    EARCHIVE_REPORT = 'EARCHIVE_REPORT'
    EDEFTER_YEVMIYE = 'EDEFTER_YEVMIYE'
    EDEFTER_KEBIR = 'EDEFTER_KEBIR'
    EDEFTER_BERAT = 'EDEFTER_BERAT'
    EDEFTER_RAPOR = 'EDEFTER_RAPOR'
    ENVANTER_DEFTER = 'ENVANTER_DEFTER'
    ENVANTER_BERAT = 'ENVANTER_BERAT'


class SchemaValidationType(Enum):
    INVOICE = 'INVOICE'
    DESPATCH_ADVICE = 'DESPATCH_ADVICE'
    RECEIPT_ADVICE = 'RECEIPT_ADVICE'
    CREDIT_NOTE = 'CREDIT_NOTE'
    APPLICATION_RESPONSE = 'APPLICATION_RESPONSE'
    EARCHIVE = 'EARCHIVE'
    EDEFTER = 'EDEFTER'


class SchematronValidationType(Enum):
    UBLTR_MAIN = 'UBLTR_MAIN'
    EARCHIVE_REPORT = 'EARCHIVE_REPORT'
    EDEFTER_YEVMIYE = 'EDEFTER_YEVMIYE'
    EDEFTER_KEBIR = 'EDEFTER_KEBIR'
    EDEFTER_BERAT = 'EDEFTER_BERAT'
    EDEFTER_RAPOR = 'EDEFTER_RAPOR'
    ENVANTER_BERAT = 'ENVANTER_BERAT'
    ENVANTER_DEFTER = 'ENVANTER_DEFTER'


class TransformType(Enum):
    """Rendering targets. ECHECK has no default template."""
    INVOICE = 'INVOICE'
    ARCHIVE_INVOICE = 'ARCHIVE_INVOICE'
    DESPATCH_ADVICE = 'DESPATCH_ADVICE'
    RECEIPT_ADVICE = 'RECEIPT_ADVICE'
    EMM = 'EMM'
    ESMM = 'ESMM'
    ECHECK = 'ECHECK'


# ==============================================================================
# MAPPINGS
# ==============================================================================

SCHEMA_MAP: Dict[DocumentType, SchemaValidationType] = {
    DocumentType.INVOICE: SchemaValidationType.INVOICE,
    DocumentType.CREDIT_NOTE: SchemaValidationType.CREDIT_NOTE,
    DocumentType.DESPATCH_ADVICE: SchemaValidationType.DESPATCH_ADVICE,
    DocumentType.RECEIPT_ADVICE: SchemaValidationType.RECEIPT_ADVICE,
    DocumentType.APPLICATION_RESPONSE: SchemaValidationType.APPLICATION_RESPONSE,
    DocumentType.EARCHIVE_REPORT: SchemaValidationType.EARCHIVE,
    DocumentType.EDEFTER_YEVMIYE: SchemaValidationType.EDEFTER,
    DocumentType.EDEFTER_KEBIR: SchemaValidationType.EDEFTER,
    DocumentType.EDEFTER_BERAT: SchemaValidationType.EDEFTER,
    DocumentType.EDEFTER_RAPOR: SchemaValidationType.EDEFTER,
    DocumentType.ENVANTER_DEFTER: SchemaValidationType.EDEFTER,
    DocumentType.ENVANTER_BERAT: SchemaValidationType.EDEFTER,
}

SCHEMATRON_MAP: Dict[DocumentType, SchematronValidationType] = {
    DocumentType.INVOICE: SchematronValidationType.UBLTR_MAIN,
    DocumentType.CREDIT_NOTE: SchematronValidationType.UBLTR_MAIN,
    DocumentType.DESPATCH_ADVICE: SchematronValidationType.UBLTR_MAIN,
    DocumentType.RECEIPT_ADVICE: SchematronValidationType.UBLTR_MAIN,
    DocumentType.APPLICATION_RESPONSE: SchematronValidationType.UBLTR_MAIN,
    DocumentType.EARCHIVE_REPORT: SchematronValidationType.EARCHIVE_REPORT,
    DocumentType.EDEFTER_YEVMIYE: SchematronValidationType.EDEFTER_YEVMIYE,
    DocumentType.EDEFTER_KEBIR: SchematronValidationType.EDEFTER_KEBIR,
    DocumentType.EDEFTER_BERAT: SchematronValidationType.EDEFTER_BERAT,
    DocumentType.EDEFTER_RAPOR: SchematronValidationType.EDEFTER_RAPOR,
    DocumentType.ENVANTER_DEFTER: SchematronValidationType.ENVANTER_DEFTER,
    DocumentType.ENVANTER_BERAT: SchematronValidationType.ENVANTER_BERAT,
}

_UBL_MAINDOC = 'validator/ubl-tr-package/schema/maindoc'
_EDEFTER_XSD = 'validator/eledger/schema/edefter.xsd'

XSD_PATH_MAP: Dict[SchemaValidationType, str] = {
    SchemaValidationType.INVOICE: f'{_UBL_MAINDOC}/UBL-Invoice-2.1.xsd',
    SchemaValidationType.CREDIT_NOTE: f'{_UBL_MAINDOC}/UBL-CreditNote-2.1.xsd',
    SchemaValidationType.DESPATCH_ADVICE: f'{_UBL_MAINDOC}/UBL-DespatchAdvice-2.1.xsd',
    SchemaValidationType.RECEIPT_ADVICE: f'{_UBL_MAINDOC}/UBL-ReceiptAdvice-2.1.xsd',
    SchemaValidationType.APPLICATION_RESPONSE: f'{_UBL_MAINDOC}/UBL-ApplicationResponse-2.1.xsd',
    SchemaValidationType.EARCHIVE: 'validator/earchive/schema/EArsiv.xsd',
    SchemaValidationType.EDEFTER: _EDEFTER_XSD,
}

SCHEMATRON_PATH_MAP: Dict[SchematronValidationType, str] = {
    SchematronValidationType.UBLTR_MAIN: 'validator/ubl-tr-package/schematron/UBL-TR_Main_Schematron.xml',
    SchematronValidationType.EARCHIVE_REPORT: 'validator/earchive/schematron/earsiv_schematron.xsl',
    SchematronValidationType.EDEFTER_YEVMIYE: 'validator/eledger/schematron/edefter_yevmiye.sch',
    SchematronValidationType.EDEFTER_KEBIR: 'validator/eledger/schematron/edefter_kebir.sch',
    SchematronValidationType.EDEFTER_BERAT: 'validator/eledger/schematron/edefter_berat.sch',
    SchematronValidationType.EDEFTER_RAPOR: 'validator/eledger/schematron/edefter_rapor.sch',
    SchematronValidationType.ENVANTER_DEFTER: 'validator/eledger/schematron/envanter_defter.sch',
    SchematronValidationType.ENVANTER_BERAT: 'validator/eledger/schematron/envanter_berat.sch',
}

DEFAULT_TEMPLATE_MAP: Dict[TransformType, str] = {
    TransformType.INVOICE: 'default_transformers/eInvoice_Base.xslt',
    TransformType.ARCHIVE_INVOICE: 'default_transformers/eArchive_Base.xslt',
    TransformType.DESPATCH_ADVICE: 'default_transformers/eDespatch_Base.xslt',
    TransformType.RECEIPT_ADVICE: 'default_transformers/eDespatch_Answer_Base.xslt',
    TransformType.EMM: 'default_transformers/eMM_Base.xslt',
    TransformType.ESMM: 'default_transformers/eSMM_Base.xslt',
}


def file_name(path: Optional[str]) -> Optional[str]:
    """Last path segment of an asset path."""
    if path is None:
        return None
    return path.rsplit('/', 1)[-1]


def parse_enum(enum_cls, value):
    """
    Look up an enum member by name (case-insensitive).

    Raises:
        ValueError: If no member matches
    """
    if isinstance(value, enum_cls):
        return value
    key = str(value).strip().upper()
    try:
        return enum_cls[key]
    except KeyError:
        valid = ', '.join(member.name for member in enum_cls)
        raise ValueError(f"Unknown {enum_cls.__name__} '{value}'. Valid values: {valid}")


__all__ = [
    'DocumentType',
    'SchemaValidationType',
    'SchematronValidationType',
    'TransformType',
    'SCHEMA_MAP',
    'SCHEMATRON_MAP',
    'XSD_PATH_MAP',
    'SCHEMATRON_PATH_MAP',
    'DEFAULT_TEMPLATE_MAP',
    'file_name',
    'parse_enum',
]
