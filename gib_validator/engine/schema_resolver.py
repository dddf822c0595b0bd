# Path: gib_validator/engine/schema_resolver.py
"""
Local Schema Resolver

Serves remote xs:import / xs:include locations from local copies.

GIB packages reference W3C and OASIS schemas by http(s) URL. The
validator never downloads them: the file name is looked up below the
schema's own directory (directly, then up to SCHEMA_RESOLVE_MAX_DEPTH
levels deep). Other locations fall through to the default resolution.
"""

from pathlib import Path
from typing import Dict, Optional

from lxml import etree

from gib_validator.core.logger import get_logger
from gib_validator.constants import SCHEMA_RESOLVE_MAX_DEPTH

logger = get_logger(__name__, 'engine')


class LocalSchemaResolver(etree.Resolver):
    """
    Example:
        parser = etree.XMLParser(no_network=True)
        parser.resolvers.add(LocalSchemaResolver(xsd_path.parent))
    """

    def __init__(self, schema_dir: Path, max_depth: int = SCHEMA_RESOLVE_MAX_DEPTH):
        super().__init__()
        self.schema_dir = Path(schema_dir)
        self.max_depth = max_depth
        self._found: Dict[str, Optional[Path]] = {}

    def resolve(self, system_url, public_id, context):
        if not system_url or not system_url.startswith(('http://', 'https://')):
            return None
        file_name = system_url.rstrip('/').rsplit('/', 1)[-1]
        local = self.find(file_name)
        if local is None:
            logger.warning(f"No local copy for remote schema {system_url}; network access is disabled")
            return None
        logger.debug(f"Resolved {system_url} -> {local}")
        return self.resolve_filename(str(local), context)

    def find(self, file_name: str) -> Optional[Path]:
        if file_name in self._found:
            return self._found[file_name]
        found = None
        direct = self.schema_dir / file_name
        if direct.is_file():
            found = direct
        else:
            for depth in range(1, self.max_depth + 1):
                pattern = '/'.join(['*'] * depth) + f'/{file_name}'
                matches = sorted(self.schema_dir.glob(pattern))
                if matches:
                    found = matches[0]
                    break
        self._found[file_name] = found
        return found


def make_schema_parser(schema_path: Path) -> etree.XMLParser:
    """XML parser for schema documents with local-only resolution."""
    search_root = next((p for p in schema_path.parents if p.name == 'schema'), schema_path.parent)
    parser = etree.XMLParser(no_network=True, resolve_entities=False)
    parser.resolvers.add(LocalSchemaResolver(search_root))
    return parser


__all__ = ['LocalSchemaResolver', 'make_schema_parser']
