# Path: gib_validator/sync/packages.py
"""
GIB Package Definitions

The official asset packages published by GIB and where their files land
in the asset tree.

Glob patterns are matched against archive-relative paths; '**/' spans any
number of directories (including none), '*' stays within one segment.
"""

from typing import Dict, List

from gib_validator.exceptions import SyncError
from gib_validator.models.reload import AssetKind
from gib_validator.models.versioning import FileMapping, PackageDefinition

_UBL_PACKAGE = 'validator/ubl-tr-package'
_EARCHIVE = 'validator/earchive'
_ELEDGER = 'validator/eledger'

PACKAGE_DEFINITIONS: List[PackageDefinition] = [
    PackageDefinition(
        id='efatura',
        display_name='e-Fatura Paketi',
        download_url='https://ebelge.gib.gov.tr/dosyalar/kilavuzlar/e-FaturaPaketi.zip',
        file_mappings=(
            FileMapping('**/schematron/*.xml', f'{_UBL_PACKAGE}/schematron/'),
        ),
        description='UBL-TR Schematron rules for e-Invoice, e-Despatch and related documents',
        asset_kinds=(AssetKind.SCHEMATRON,),
    ),
    PackageDefinition(
        id='ubltr-xsd',
        display_name='UBL-TR 1.2.1 Paketi',
        download_url='https://ebelge.gib.gov.tr/dosyalar/kilavuzlar/UBL-TR1.2.1_Paketi.zip',
        file_mappings=(
            FileMapping('**/xsdrt/common/*.xsd', f'{_UBL_PACKAGE}/schema/common/'),
            FileMapping('**/xsdrt/maindoc/*.xsd', f'{_UBL_PACKAGE}/schema/maindoc/'),
        ),
        description='UBL-TR 1.2.1 XSD schemas',
        asset_kinds=(AssetKind.SCHEMA,),
    ),
    PackageDefinition(
        id='earsiv',
        display_name='e-Arşiv Paketi',
        download_url='https://ebelge.gib.gov.tr/dosyalar/kilavuzlar/earsiv_paket_v1.1_6.zip',
        file_mappings=(
            FileMapping('*.xsl', f'{_EARCHIVE}/schematron/'),
            FileMapping('*.xsd', f'{_EARCHIVE}/schema/'),
        ),
        description='e-Archive report schema and validation stylesheet',
        asset_kinds=(AssetKind.SCHEMA, AssetKind.SCHEMATRON),
    ),
    PackageDefinition(
        id='edefter',
        display_name='e-Defter Paketi',
        download_url='https://www.edefter.gov.tr/dosyalar/paketler/e-Defter_Paketi.zip',
        file_mappings=(
            FileMapping('**/sch/*.sch', f'{_ELEDGER}/schematron/'),
            FileMapping('**/xsd/*.xsd', f'{_ELEDGER}/schema/'),
            FileMapping('**/xsd/**/*.xsd', f'{_ELEDGER}/schema/'),
        ),
        description='e-Ledger XBRL-GL schemas and Schematron rules',
        asset_kinds=(AssetKind.SCHEMA, AssetKind.SCHEMATRON),
    ),
]

PACKAGES_BY_ID: Dict[str, PackageDefinition] = {package.id: package for package in PACKAGE_DEFINITIONS}


def package_ids() -> List[str]:
    return [package.id for package in PACKAGE_DEFINITIONS]


def get_package(package_id: str) -> PackageDefinition:
    """
    Raises:
        SyncError: Unknown package id (message lists the valid ids)
    """
    package = PACKAGES_BY_ID.get(package_id)
    if package is None:
        raise SyncError(f"Unknown package '{package_id}'. Valid packages: {', '.join(package_ids())}")
    return package


__all__ = ['PACKAGE_DEFINITIONS', 'PACKAGES_BY_ID', 'package_ids', 'get_package']
