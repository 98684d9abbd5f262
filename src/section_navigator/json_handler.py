"""
JSON output handler with schema validation for Section Navigator.

Formats the section list into the bulk "replace all sections for this
document" payload consumed by persistence backends, validates it against the
bundled schema and writes it with multilingual text preserved.
"""

import json
import re
import unicodedata
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from jsonschema import ValidationError, validate

from .data_models import Section
from .logging_config import SectionExportError, setup_logging

logger = setup_logging()

DEFAULT_SCHEMA_PATH = Path(__file__).parent / "schema" / "sections_schema.json"


def _jsonable(value: Any) -> Any:
    """Convert explicit destinations (tuples, numbers, names) to JSON values."""
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    return str(value)


class SectionJSONHandler:
    """
    Handles JSON output formatting and schema validation for section lists.

    Features:
    - Replace-all payload for persistence backends
    - Document envelope for file export
    - Special character preservation
    """

    def __init__(self, schema_path: Optional[str] = None):
        """
        Initialize the JSON handler.

        Args:
            schema_path: Path to the JSON schema file; the bundled schema by default
        """
        self.schema_path = str(schema_path or DEFAULT_SCHEMA_PATH)
        self.schema = self._load_schema()

    def _load_schema(self) -> Optional[Dict[str, Any]]:
        try:
            schema_file = Path(self.schema_path)
            if not schema_file.exists():
                logger.warning(f"Schema file not found: {self.schema_path}")
                return None

            with open(schema_file, 'r', encoding='utf-8') as f:
                schema = json.load(f)
                logger.debug(f"Loaded schema from {self.schema_path}")
                return schema

        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load schema from {self.schema_path}: {e}")
            return None

    def sanitize_for_json(self, text: str) -> str:
        """
        Sanitize text for JSON output while preserving special characters.

        Args:
            text: Input text to sanitize

        Returns:
            NFC-normalised text without control characters
        """
        if not text:
            return ""

        sanitized = unicodedata.normalize('NFC', text)
        sanitized = re.sub(r'\s+', ' ', sanitized).strip()
        return ''.join(
            char for char in sanitized
            if not unicodedata.category(char).startswith('C')
        )

    def format_section(self, section: Section) -> Dict[str, Any]:
        """Format one section as a replace-payload item."""
        return {
            'id': section.id,
            'title': self.sanitize_for_json(section.title) or "Untitled",
            'level': int(section.level),
            'page': int(section.page),
            'pdfX': section.anchor_x,
            'pdfY': section.anchor_y,
            'source': section.source.value,
            'dest': _jsonable(section.destination),
        }

    def build_replace_payload(self, sections: Sequence[Section]) -> Dict[str, Any]:
        """
        Build the payload replacing every stored section of a document.

        Args:
            sections: Ordered section list

        Returns:
            ``{"sections": [...]}`` in emission order
        """
        return {'sections': [self.format_section(s) for s in sections]}

    def create_document_output(self, sections: Sequence[Section], document: str,
                               page_count: int, validate_output: bool = True) -> Dict[str, Any]:
        """
        Create the export envelope for one document.

        Args:
            sections: Ordered section list
            document: Document name
            page_count: Physical page count
            validate_output: Whether to perform schema validation

        Returns:
            Dictionary ready for serialization
        """
        json_data = {
            'document': document,
            'page_count': int(page_count),
            'source': sections[0].source.value if sections else None,
        }
        json_data.update(self.build_replace_payload(sections))

        if validate_output and not self.validate_schema(json_data):
            logger.warning(f"Schema validation failed for {document}, but continuing with output")
        return json_data

    def validate_schema(self, json_data: Dict[str, Any]) -> bool:
        """
        Validate JSON data against the loaded schema.

        Returns:
            True if validation passes, False otherwise
        """
        if not self.schema:
            logger.warning("No schema loaded, skipping validation")
            return True

        try:
            validate(instance=json_data, schema=self.schema)
            logger.debug("Schema validation passed")
            return True
        except ValidationError as e:
            logger.error(f"Schema validation failed: {e.message}")
            logger.debug(f"Validation error path: {list(e.absolute_path)}")
            return False

    def to_json(self, json_data: Dict[str, Any], indent: Optional[int] = 2) -> str:
        return json.dumps(json_data, ensure_ascii=False, indent=indent)

    def write_json_file(self, json_data: Dict[str, Any], output_path: str) -> None:
        """
        Write JSON data to file with proper encoding.

        Raises:
            SectionExportError: If the file cannot be written
        """
        output_file = Path(output_path)
        try:
            output_file.parent.mkdir(parents=True, exist_ok=True)
            with open(output_file, 'w', encoding='utf-8') as f:
                json.dump(json_data, f, ensure_ascii=False, indent=2)
        except OSError as e:
            raise SectionExportError(f"Failed to write JSON file {output_path}: {e}") from e
        logger.info(f"Successfully wrote JSON output to {output_path}")

    def load_payload(self, input_path: str) -> List[Dict[str, Any]]:
        """Read back the sections of a previously written file."""
        with open(input_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        if not self.validate_schema(data):
            raise SectionExportError(f"File {input_path} does not match the section schema")
        return data['sections']
