# Path: gib_validator/__init__.py
"""
GIB Validator

Validates and renders Turkish e-documents (e-Invoice, e-Archive, e-Ledger)
against the official GIB XSD and Schematron assets, and keeps those assets
current through staged, operator-approved package syncs.

Architecture (IPO):
- INPUT: core/ - configuration, asset paths, logging; sync/ - GIB package download
- PROCESS: engine/ - detection, XSD + Schematron validation, suppression, XSLT rendering
- OUTPUT: service.py - operations facade; cli/ - command line; history/ - version records

Usage:
    gib-validator validate invoice.xml --profile lenient

    # Or programmatically:
    from gib_validator import GibValidatorService

    service = GibValidatorService()
    service.start()
    response = service.validate(xml_bytes, source_file_name='invoice.xml')
"""

__version__ = '1.0.0'
__author__ = 'MAP PRO'

from .service import GibValidatorService
from .core.config_loader import ConfigLoader
from .models.validation import ValidationResponse, ValidationResult
from .models.transform import TransformResult

__all__ = [
    '__version__',
    '__author__',
    'GibValidatorService',
    'ConfigLoader',
    'ValidationResponse',
    'ValidationResult',
    'TransformResult',
]
