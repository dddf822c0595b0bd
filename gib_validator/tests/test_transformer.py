# Path: gib_validator/tests/test_transformer.py
"""HTML rendering: template selection, fallbacks, watermark and template management."""

import base64

import pytest

from gib_validator.engine.embedded_xslt import decode_template, extract_embedded_xslt
from gib_validator.engine.transformer import XsltTransformer, compile_untrusted
from gib_validator.engine.watermark import WATERMARK_STYLE, apply_watermark
from gib_validator.exceptions import (
    AssetError,
    AssetNotFoundError,
    DocumentParseError,
    InputError,
    TransformError,
)
from gib_validator.models.document_types import TransformType
from gib_validator.models.transform import TransformRequest, TransformResult
from gib_validator.constants import HEADER_CUSTOM_ERROR, HEADER_DEFAULT_USED

from gib_validator.tests.conftest import (
    INVOICE_DOCUMENT,
    INVOICE_TEMPLATE_PATH,
    NS_CAC,
    NS_CBC,
    NS_INVOICE,
)

CUSTOM_XSLT = b'''<?xml version="1.0" encoding="UTF-8"?>
<xsl:stylesheet version="1.0" xmlns:xsl="http://www.w3.org/1999/XSL/Transform">
  <xsl:output method="html"/>
  <xsl:template match="/"><html><body><p>Custom</p></body></html></xsl:template>
</xsl:stylesheet>
'''

EMBEDDED_XSLT = b'''<?xml version="1.0" encoding="UTF-8"?>
<xsl:stylesheet version="1.0" xmlns:xsl="http://www.w3.org/1999/XSL/Transform">
  <xsl:output method="html"/>
  <xsl:template match="/"><html><body><p>Embedded</p></body></html></xsl:template>
</xsl:stylesheet>
'''


def _with_attachment(xslt: bytes, filename: str = 'invoice.xslt') -> bytes:
    payload = base64.b64encode(xslt).decode('ascii')
    return f'''<Invoice xmlns="{NS_INVOICE}" xmlns:cbc="{NS_CBC}" xmlns:cac="{NS_CAC}">
  <cbc:ID>INV-1</cbc:ID>
  <cac:AdditionalDocumentReference>
    <cbc:ID>XSLT</cbc:ID>
    <cac:Attachment>
      <cbc:EmbeddedDocumentBinaryObject filename="{filename}" mimeCode="application/xml">{payload}</cbc:EmbeddedDocumentBinaryObject>
    </cac:Attachment>
  </cac:AdditionalDocumentReference>
</Invoice>'''.encode('utf-8')


@pytest.fixture
def transformer(store):
    transformer = XsltTransformer(store, watermark_repeat=2)
    transformer.reload()
    return transformer


def test_default_template_used(transformer):
    result = transformer.transform(TransformRequest(INVOICE_DOCUMENT, TransformType.INVOICE))
    assert result.default_used
    assert not result.embedded_used
    assert result.custom_xslt_error is None
    assert 'Default INV-1' in result.html_content
    assert result.output_size == len(result.html_content.encode('utf-8'))


def test_custom_template_wins(transformer):
    result = transformer.transform(TransformRequest(INVOICE_DOCUMENT, TransformType.INVOICE, transformer=CUSTOM_XSLT))
    assert 'Custom' in result.html_content
    assert not result.default_used


def test_broken_custom_template_falls_back(transformer):
    result = transformer.transform(TransformRequest(
        INVOICE_DOCUMENT, TransformType.INVOICE, transformer=b'<xsl:stylesheet'
    ))
    assert result.default_used
    assert result.custom_xslt_error
    headers = result.to_headers()
    assert headers[HEADER_DEFAULT_USED] == 'true'
    assert '\n' not in headers[HEADER_CUSTOM_ERROR]


def test_custom_template_cannot_read_files(transformer, tmp_path):
    secret = tmp_path / 'secret.xml'
    secret.write_text('<secret>classified</secret>')
    reader = f'''<xsl:stylesheet version="1.0" xmlns:xsl="http://www.w3.org/1999/XSL/Transform">
  <xsl:template match="/"><html><body><xsl:value-of select="document('{secret.as_uri()}')"/></body></html></xsl:template>
</xsl:stylesheet>'''.encode('utf-8')
    result = transformer.transform(TransformRequest(INVOICE_DOCUMENT, TransformType.INVOICE, transformer=reader))
    assert 'classified' not in result.html_content


def test_embedded_template_used_when_requested(transformer):
    document = _with_attachment(EMBEDDED_XSLT)
    result = transformer.transform(TransformRequest(document, TransformType.INVOICE, use_embedded_xslt=True))
    assert result.embedded_used
    assert not result.default_used
    assert 'Embedded' in result.html_content


def test_embedded_template_ignored_unless_requested(transformer):
    result = transformer.transform(TransformRequest(_with_attachment(EMBEDDED_XSLT), TransformType.INVOICE))
    assert result.default_used
    assert not result.embedded_used


def test_custom_template_beats_embedded(transformer):
    result = transformer.transform(TransformRequest(
        _with_attachment(EMBEDDED_XSLT), TransformType.INVOICE, transformer=CUSTOM_XSLT, use_embedded_xslt=True
    ))
    assert 'Custom' in result.html_content
    assert not result.embedded_used


def test_missing_default_template(transformer):
    with pytest.raises(TransformError, match='unsupported transform type or XSLT not loaded'):
        transformer.transform(TransformRequest(INVOICE_DOCUMENT, TransformType.EMM))


def test_unparseable_document(transformer):
    with pytest.raises(DocumentParseError) as caught:
        transformer.transform(TransformRequest(b'<Invoice', TransformType.INVOICE))
    assert isinstance(caught.value, InputError)
    assert not isinstance(caught.value, AssetError)


def test_legacy_encoding_declaration_rewritten_only_in_prolog(transformer):
    legacy = '''<?xml version="1.0" encoding="windows-1254"?>
<xsl:stylesheet version="1.0" xmlns:xsl="http://www.w3.org/1999/XSL/Transform">
  <xsl:output method="html"/>
  <xsl:template match="/"><html><body><p>Şirket Windows-1254</p></body></html></xsl:template>
</xsl:stylesheet>
'''.encode('windows-1254')
    result = transformer.transform(TransformRequest(INVOICE_DOCUMENT, TransformType.INVOICE, transformer=legacy))
    assert result.custom_xslt_error is None
    assert 'Şirket Windows-1254' in result.html_content


def test_stylesheet_without_declaration_compiles():
    text = CUSTOM_XSLT.decode('utf-8').split('\n', 1)[1]
    assert compile_untrusted(text) is not None


def test_watermark_applied(transformer):
    result = transformer.transform(TransformRequest(
        INVOICE_DOCUMENT, TransformType.INVOICE, watermark_text='  TASLAK <copy>  '
    ))
    assert result.watermark_applied
    assert result.html_content.count('class="watermark"') == 4
    assert 'TASLAK &lt;copy&gt;' in result.html_content
    assert WATERMARK_STYLE in result.html_content


def test_blank_watermark_ignored(transformer):
    result = transformer.transform(TransformRequest(INVOICE_DOCUMENT, TransformType.INVOICE, watermark_text='   '))
    assert not result.watermark_applied
    assert 'watermark' not in result.html_content


def test_watermark_needs_body():
    html, applied = apply_watermark('<p>fragment</p>', 'TASLAK')
    assert not applied
    assert html == '<p>fragment</p>'


def test_watermark_without_head_skips_style():
    html, applied = apply_watermark('<html><body>x</body></html>', 'TASLAK', repeat=1)
    assert applied
    assert WATERMARK_STYLE not in html
    assert html.index('class="watermark"') < html.index('</body>')


def test_extract_embedded_xslt():
    assert 'Embedded' in extract_embedded_xslt(_with_attachment(EMBEDDED_XSLT))
    assert extract_embedded_xslt(_with_attachment(EMBEDDED_XSLT, filename='logo.png')) is None
    assert extract_embedded_xslt(INVOICE_DOCUMENT) is None
    assert extract_embedded_xslt(b'not xml') is None


def test_decode_template_falls_back_to_turkish_code_page():
    assert decode_template('Şirket'.encode('windows-1254')) == 'Şirket'


def test_put_and_delete_default_template(transformer, store):
    transformer.put_default_template(TransformType.INVOICE, CUSTOM_XSLT)
    assert store.read_bytes(INVOICE_TEMPLATE_PATH) == CUSTOM_XSLT
    result = transformer.transform(TransformRequest(INVOICE_DOCUMENT, TransformType.INVOICE))
    assert 'Custom' in result.html_content

    assert transformer.delete_default_template(TransformType.INVOICE)
    assert not transformer.delete_default_template(TransformType.INVOICE)
    with pytest.raises(AssetNotFoundError):
        transformer.get_default_template(TransformType.INVOICE)
    with pytest.raises(TransformError):
        transformer.transform(TransformRequest(INVOICE_DOCUMENT, TransformType.INVOICE))


def test_put_invalid_template_rejected(transformer, store):
    original = store.read_bytes(INVOICE_TEMPLATE_PATH)
    with pytest.raises(TransformError, match='Invalid XSLT'):
        transformer.put_default_template(TransformType.INVOICE, b'<html/>')
    assert store.read_bytes(INVOICE_TEMPLATE_PATH) == original


def test_echeck_has_no_template_slot(transformer):
    with pytest.raises(TransformError):
        transformer.put_default_template(TransformType.ECHECK, CUSTOM_XSLT)


def test_result_headers():
    headers = TransformResult('<html/>', default_used=True, duration_ms=5).to_headers()
    assert headers == {
        'X-Xslt-Default-Used': 'true',
        'X-Xslt-Embedded-Used': 'false',
        'X-Xslt-Duration-Ms': '5',
        'X-Xslt-Watermark-Applied': 'false',
        'X-Xslt-Output-Size': '7',
    }
