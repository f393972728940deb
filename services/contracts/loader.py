"""
Template Definition Loader

Loads, validates, and caches the canonical template definitions from YAML
files. Every definition is checked on startup and loading fails fast if
any file is invalid.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

import jsonschema
import yaml

from .types import TemplateDefinition
from .exceptions import ConfigurationError, ValidationError

logger = logging.getLogger(__name__)

# Paths
DOCUMENTS_DIR = Path(__file__).parent.parent.parent / 'documents'
SCHEMA_DIR = DOCUMENTS_DIR / 'schema'


class TemplateDefinitionLoader:
    """
    Singleton loader for template definitions.

    Loads all YAML files from the documents/ directory, validates them
    against the JSON schema, and caches them by slug. The cached
    definitions are the only source of legal text used when seeding or
    repairing stored templates.

    Usage:
        # On app startup
        TemplateDefinitionLoader.load_all()

        # When seeding or repairing
        definition = TemplateDefinitionLoader.get('deposit-receipt')
    """

    _definitions: Dict[str, TemplateDefinition] = {}
    _schemas: Dict[str, dict] = {}
    _validated: bool = False

    @classmethod
    def load_all(cls, documents_dir: Path = None) -> None:
        """
        Load and validate all template definitions.

        Called at app startup. If any definition fails validation,
        raises ConfigurationError with all errors listed.
        """
        cls._definitions.clear()
        cls._validated = False
        errors = []

        cls._load_schemas()

        documents_dir = Path(documents_dir) if documents_dir else DOCUMENTS_DIR
        if not documents_dir.exists():
            logger.warning(f"Documents directory not found: {documents_dir}")
            return

        yaml_files = sorted(
            list(documents_dir.glob('*.yml')) + list(documents_dir.glob('*.yaml'))
        )

        if not yaml_files:
            logger.warning(f"No template definitions found in {documents_dir}")
            return

        names: Dict[str, str] = {}
        for yaml_file in yaml_files:
            try:
                definition = cls._load_and_validate(yaml_file)

                if definition.slug in cls._definitions:
                    errors.append(
                        f"{yaml_file.name}: Duplicate slug '{definition.slug}' "
                        f"(already defined in another file)"
                    )
                    continue

                if definition.name in names:
                    errors.append(
                        f"{yaml_file.name}: Duplicate template name '{definition.name}' "
                        f"(already used by '{names[definition.name]}')"
                    )
                    continue

                undeclared = definition.undeclared_placeholders()
                if undeclared:
                    logger.warning(
                        f"{yaml_file.name}: placeholders not listed in variables: {undeclared}"
                    )

                cls._definitions[definition.slug] = definition
                names[definition.name] = definition.slug
                logger.debug(f"Loaded template definition: {definition.slug}")

            except (ValidationError, yaml.YAMLError) as e:
                errors.append(f"{yaml_file.name}: {e}")

        if errors:
            error_msg = "Template configuration errors:\n" + "\n".join(f"  - {e}" for e in errors)
            logger.error(error_msg)
            raise ConfigurationError(error_msg)

        cls._validated = True
        logger.info(f"Loaded {len(cls._definitions)} template definition(s)")

    @classmethod
    def _load_schemas(cls) -> None:
        """Load JSON schemas for validation."""
        cls._schemas.clear()
        if not SCHEMA_DIR.exists():
            logger.warning(f"Schema directory not found: {SCHEMA_DIR}")
            return

        for schema_file in SCHEMA_DIR.glob('v*.json'):
            try:
                cls._schemas[schema_file.stem] = json.loads(schema_file.read_text(encoding='utf-8'))
                logger.debug(f"Loaded schema: {schema_file.stem}")
            except (OSError, json.JSONDecodeError) as e:
                raise ConfigurationError(f"Failed to load schema {schema_file.name}: {e}")

    @classmethod
    def _get_schema(cls, version: str) -> dict:
        schema_key = f"v{version}"
        if schema_key not in cls._schemas:
            raise ValidationError(f"Unknown schema version: {version}")
        return cls._schemas[schema_key]

    @classmethod
    def _validate_raw(cls, raw: dict) -> None:
        """Schema validation followed by the business rules."""
        if not isinstance(raw, dict):
            raise ValidationError("Template definition must be a mapping")

        schema_version = str(raw.get('schema_version', '1.0'))
        if cls._schemas:
            try:
                jsonschema.validate(raw, cls._get_schema(schema_version))
            except jsonschema.ValidationError as e:
                location = '.'.join(str(p) for p in e.absolute_path)
                where = f" at '{location}'" if location else ""
                raise ValidationError(
                    f"Schema validation failed{where}: {e.message}",
                    document_slug=raw.get('slug'),
                    field=location or None
                )

        cls._validate_business_rules(raw)

    @classmethod
    def _load_and_validate(cls, path: Path) -> TemplateDefinition:
        """Load a YAML file and validate it."""
        raw = yaml.safe_load(path.read_text(encoding='utf-8'))

        if not raw:
            raise ValidationError("Empty template definition")

        cls._validate_raw(raw)
        return TemplateDefinition.from_dict(raw)

    @classmethod
    def _validate_business_rules(cls, raw: dict) -> None:
        """Validate rules the JSON schema cannot express."""
        slug = raw.get('slug')
        clauses = raw.get('clauses', [])

        order = [c['order_index'] for c in clauses]
        if len(order) != len(set(order)):
            duplicates = sorted({i for i in order if order.count(i) > 1})
            raise ValidationError(
                f"Duplicate clause order_index values: {duplicates}",
                document_slug=slug, field='clauses'
            )

        numbers = [str(c['clause_number']) for c in clauses]
        if len(numbers) != len(set(numbers)):
            duplicates = sorted({n for n in numbers if numbers.count(n) > 1})
            raise ValidationError(
                f"Duplicate clause numbers: {duplicates}",
                document_slug=slug, field='clauses'
            )

        # Clause layouts need something to draw
        if raw.get('layout') in ('clauses', 'simple') and not clauses:
            raise ValidationError(
                f"Layout '{raw.get('layout')}' requires at least one clause",
                document_slug=slug, field='clauses'
            )

    @classmethod
    def get(cls, slug: str) -> Optional[TemplateDefinition]:
        """
        Get a template definition by slug.

        Returns None if not found.
        """
        return cls._definitions.get(slug)

    @classmethod
    def get_or_raise(cls, slug: str) -> TemplateDefinition:
        definition = cls.get(slug)
        if not definition:
            raise ValidationError(f"Unknown template slug: {slug}", document_slug=slug)
        return definition

    @classmethod
    def get_by_name(cls, name: str) -> Optional[TemplateDefinition]:
        """Get a template definition by its exact template name."""
        for definition in cls._definitions.values():
            if definition.name == name:
                return definition
        return None

    @classmethod
    def all(cls) -> List[TemplateDefinition]:
        """Get all loaded definitions, main contract first then by name."""
        return sorted(
            cls._definitions.values(),
            key=lambda d: (not d.is_default, d.name)
        )

    @classmethod
    def all_slugs(cls) -> List[str]:
        return list(cls._definitions.keys())

    @classmethod
    def is_loaded(cls) -> bool:
        """Check if definitions have been loaded and validated."""
        return cls._validated

    @classmethod
    def clear(cls) -> None:
        """Clear all cached definitions. Mainly for testing."""
        cls._definitions.clear()
        cls._validated = False

    @classmethod
    def reload(cls) -> None:
        """Reload all template definitions."""
        cls.clear()
        try:
            cls.load_all()
        except ConfigurationError as e:
            logger.error(f"Failed to reload template definitions: {e}")
            raise

    @classmethod
    def validate_yaml_content(cls, yaml_content: str) -> List[str]:
        """
        Validate YAML content without saving.

        Args:
            yaml_content: Raw YAML string to validate

        Returns:
            List of validation error messages (empty if valid)
        """
        if not cls._schemas:
            cls._load_schemas()

        try:
            raw = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            return [f"YAML syntax error: {e}"]

        if not raw:
            return ["Empty template definition"]

        errors = []
        try:
            cls._validate_raw(raw)
        except ValidationError as e:
            errors.append(str(e))
            return errors

        definition = TemplateDefinition.from_dict(raw)
        existing = cls.get_by_name(definition.name)
        if existing and existing.slug != definition.slug:
            errors.append(
                f"Template name '{definition.name}' is already used by '{existing.slug}'"
            )
        return errors
