# Path: gib_validator/tests/conftest.py
"""
Shared Test Fixtures

Builds a miniature GIB asset tree in a temporary directory:
- UBL Invoice XSD (maindoc + common basic components)
- UBL-TR main Schematron with two assertions (R-001, R-002)
- Default INVOICE rendering template

Package downloads are replaced by FakeDownloader, which writes in-memory
archives instead of touching the network.
"""

import io
import zipfile
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict

import pytest

from gib_validator.core.config_loader import ConfigLoader
from gib_validator.engine.asset_cache import AssetCache
from gib_validator.engine.asset_store import AssetStore
from gib_validator.engine.profiles import ProfileRegistry
from gib_validator.exceptions import DownloadError
from gib_validator.service import GibValidatorService
from gib_validator.sync.packages import get_package

NS_INVOICE = 'urn:oasis:names:specification:ubl:schema:xsd:Invoice-2'
NS_CBC = 'urn:oasis:names:specification:ubl:schema:xsd:CommonBasicComponents-2'
NS_CAC = 'urn:oasis:names:specification:ubl:schema:xsd:CommonAggregateComponents-2'

INVOICE_XSD_PATH = 'validator/ubl-tr-package/schema/maindoc/UBL-Invoice-2.1.xsd'
CBC_XSD_PATH = 'validator/ubl-tr-package/schema/common/UBL-CommonBasicComponents-2.1.xsd'
MAIN_SCHEMATRON_PATH = 'validator/ubl-tr-package/schematron/UBL-TR_Main_Schematron.xml'
INVOICE_TEMPLATE_PATH = 'default_transformers/eInvoice_Base.xslt'

ADMIN_USERNAME = 'admin'
ADMIN_PASSWORD = 'test-secret'

INVOICE_XSD = f'''<?xml version="1.0" encoding="UTF-8"?>
<xs:schema xmlns:xs="http://www.w3.org/2001/XMLSchema"
           xmlns="{NS_INVOICE}"
           xmlns:cbc="{NS_CBC}"
           targetNamespace="{NS_INVOICE}"
           elementFormDefault="qualified">
  <xs:import namespace="{NS_CBC}" schemaLocation="../common/UBL-CommonBasicComponents-2.1.xsd"/>
  <xs:element name="Invoice">
    <xs:complexType>
      <xs:sequence>
        <xs:element ref="cbc:ID"/>
        <xs:element ref="cbc:Note" minOccurs="0"/>
        <xs:element ref="cbc:IssueDate"/>
      </xs:sequence>
    </xs:complexType>
  </xs:element>
</xs:schema>
'''.encode('utf-8')

CBC_XSD = f'''<?xml version="1.0" encoding="UTF-8"?>
<xs:schema xmlns:xs="http://www.w3.org/2001/XMLSchema"
           targetNamespace="{NS_CBC}"
           elementFormDefault="qualified">
  <xs:element name="ID" type="xs:string"/>
  <xs:element name="Note" type="xs:string"/>
  <xs:element name="IssueDate" type="xs:date"/>
</xs:schema>
'''.encode('utf-8')

MAIN_SCHEMATRON = f'''<?xml version="1.0" encoding="UTF-8"?>
<sch:schema xmlns:sch="http://purl.oclc.org/dsdl/schematron">
  <sch:ns prefix="inv" uri="{NS_INVOICE}"/>
  <sch:ns prefix="cbc" uri="{NS_CBC}"/>
  <sch:pattern id="invoice-checks">
    <sch:rule context="/inv:Invoice" id="InvoiceRule">
      <sch:assert id="R-001" test="cbc:Note">Invoice must carry a note</sch:assert>
      <sch:assert id="R-002" test="string-length(cbc:ID) = 16">Invoice ID must be 16 characters long</sch:assert>
    </sch:rule>
  </sch:pattern>
</sch:schema>
'''.encode('utf-8')

INVOICE_TEMPLATE = f'''<?xml version="1.0" encoding="UTF-8"?>
<xsl:stylesheet version="1.0"
                xmlns:xsl="http://www.w3.org/1999/XSL/Transform"
                xmlns:inv="{NS_INVOICE}"
                xmlns:cbc="{NS_CBC}"
                exclude-result-prefixes="inv cbc">
  <xsl:output method="html" encoding="UTF-8"/>
  <xsl:template match="/">
    <html>
      <head><title>Invoice</title></head>
      <body><h1>Default <xsl:value-of select="/inv:Invoice/cbc:ID"/></h1></body>
    </html>
  </xsl:template>
</xsl:stylesheet>
'''.encode('utf-8')

# Valid against the XSD; fails R-001 (no note) and R-002 (short id)
INVOICE_DOCUMENT = f'''<?xml version="1.0" encoding="UTF-8"?>
<Invoice xmlns="{NS_INVOICE}" xmlns:cbc="{NS_CBC}">
  <cbc:ID>INV-1</cbc:ID>
  <cbc:IssueDate>2024-01-15</cbc:IssueDate>
</Invoice>
'''.encode('utf-8')

# Missing the mandatory IssueDate
INVOICE_WITHOUT_DATE = f'''<?xml version="1.0" encoding="UTF-8"?>
<Invoice xmlns="{NS_INVOICE}" xmlns:cbc="{NS_CBC}">
  <cbc:ID>ABC2024000000001</cbc:ID>
  <cbc:Note>note</cbc:Note>
</Invoice>
'''.encode('utf-8')


def write_asset(root: Path, relative_path: str, content: bytes) -> Path:
    path = root / relative_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return path


def build_asset_tree(root: Path) -> Path:
    write_asset(root, INVOICE_XSD_PATH, INVOICE_XSD)
    write_asset(root, CBC_XSD_PATH, CBC_XSD)
    write_asset(root, MAIN_SCHEMATRON_PATH, MAIN_SCHEMATRON)
    write_asset(root, INVOICE_TEMPLATE_PATH, INVOICE_TEMPLATE)
    return root


def make_zip(members: Dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, 'w') as archive:
        for name, data in members.items():
            archive.writestr(name, data)
    return buffer.getvalue()


class FakeDownloader:
    """Stands in for PackageDownloader; archives are keyed by download URL."""

    def __init__(self, archives: Dict[str, bytes]):
        self.archives = archives
        self.downloaded = []

    async def __aenter__(self) -> 'FakeDownloader':
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    async def download(self, url: str, output_path: Path) -> int:
        data = self.archives.get(url)
        if data is None:
            raise DownloadError(f"HTTP 404 for {url}")
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(data)
        self.downloaded.append(url)
        return len(data)


class PackageArchives:
    """Mutable package id -> archive members, served through FakeDownloader."""

    def __init__(self):
        self.members: Dict[str, Dict[str, bytes]] = {}

    def set(self, package_id: str, members: Dict[str, bytes]) -> None:
        self.members[package_id] = members

    def factory(self):
        archives = {
            get_package(package_id).download_url: make_zip(members)
            for package_id, members in self.members.items()
        }
        return FakeDownloader(archives)


class FixedClock:
    """Deterministic datetime source; advance() moves it forward."""

    def __init__(self, start: datetime = datetime(2024, 3, 1, 12, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def assets_root(tmp_path) -> Path:
    return build_asset_tree(tmp_path / 'assets')


@pytest.fixture
def store(assets_root) -> AssetStore:
    return AssetStore(assets_root)


@pytest.fixture
def cache() -> AssetCache:
    return AssetCache(ttl_seconds=3600, max_entries=50)


@pytest.fixture
def registry(assets_root) -> ProfileRegistry:
    registry = ProfileRegistry(assets_root / 'validation-profiles.yml')
    registry.reload()
    return registry


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def archives() -> PackageArchives:
    return PackageArchives()


@pytest.fixture
def config(assets_root) -> ConfigLoader:
    return ConfigLoader(overrides={
        'assets_dir': assets_root,
        'history_db_url': f"sqlite:///{assets_root / 'history' / 'versions.db'}",
        'auth_username': ADMIN_USERNAME,
        'auth_password': ADMIN_PASSWORD,
        'environment': 'test',
        'sync_enabled': True,
        'severity_unscoped': 'CRITICAL',
        'severity_scoped': 'WARNING',
    })


@pytest.fixture
def service(config, archives):
    service = GibValidatorService(config, downloader_factory=archives.factory)
    service.start()
    yield service
    service.close()


@pytest.fixture
def token(service) -> str:
    return service.login(ADMIN_USERNAME, ADMIN_PASSWORD)
