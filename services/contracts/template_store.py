"""
Template Store

Persistence operations over document types, templates and clauses.

Stored templates are seeded from the canonical YAML definitions (see
TemplateDefinitionLoader). A template found with zero clauses is
repaired from the same definitions, so legal text never lives in two
places.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError

from models import db, DocumentType, DocumentTemplate, TemplateClause
from .decorators import storage_errors_wrapped
from .exceptions import MissingDocumentType, NotFound, ValidationError
from .loader import TemplateDefinitionLoader
from .types import TemplateDefinition

logger = logging.getLogger(__name__)


class TemplateStore:
    """
    CRUD and lookup for templates and their clauses.

    Usage:
        template = TemplateStore.get_default_template('rental')
        clauses = TemplateStore.list_clauses(template.id)
        annex_id = TemplateStore.get_or_create_by_name('Anexo VI - Recebimento de Caução')
    """

    # =========================================================================
    # QUERIES
    # =========================================================================

    @classmethod
    @storage_errors_wrapped
    def list_document_types(cls, active_only: bool = True) -> List[DocumentType]:
        query = DocumentType.query
        if active_only:
            query = query.filter_by(is_active=True)
        return query.order_by(DocumentType.name).all()

    @classmethod
    @storage_errors_wrapped
    def list_templates_by_type(cls, type_id: int) -> List[DocumentTemplate]:
        """Active templates of a document type, ordered by name."""
        return (DocumentTemplate.query
                .filter_by(document_type_id=type_id, is_active=True)
                .order_by(DocumentTemplate.name)
                .all())

    @classmethod
    @storage_errors_wrapped
    def get_default_template(cls, category: str) -> Optional[DocumentTemplate]:
        """Active default template of an active type in `category`, or None."""
        return (DocumentTemplate.query
                .join(DocumentType, DocumentTemplate.document_type_id == DocumentType.id)
                .filter(DocumentType.category == category,
                        DocumentType.is_active.is_(True),
                        DocumentTemplate.is_active.is_(True),
                        DocumentTemplate.is_default.is_(True))
                .order_by(DocumentTemplate.id)
                .first())

    @classmethod
    @storage_errors_wrapped
    def get_template_by_name(cls, name: str) -> Optional[DocumentTemplate]:
        return DocumentTemplate.query.filter_by(name=name, is_active=True).first()

    @classmethod
    @storage_errors_wrapped
    def get_template_by_id(cls, template_id: int) -> Optional[DocumentTemplate]:
        return db.session.get(DocumentTemplate, template_id)

    @classmethod
    def get_template_or_raise(cls, template_id: int) -> DocumentTemplate:
        template = cls.get_template_by_id(template_id)
        if template is None:
            raise NotFound(f"Template {template_id} not found",
                           entity='template', identifier=template_id)
        return template

    @classmethod
    @storage_errors_wrapped
    def list_clauses(cls, template_id: int) -> List[TemplateClause]:
        """Clauses of a template in render order."""
        return (TemplateClause.query
                .filter_by(template_id=template_id)
                .order_by(TemplateClause.order_index, TemplateClause.id)
                .all())

    # =========================================================================
    # CREATION
    # =========================================================================

    @classmethod
    @storage_errors_wrapped
    def create_document_type(
        cls,
        name: str,
        category: str,
        description: str = None
    ) -> DocumentType:
        doc_type = DocumentType(name=name, category=category, description=description)
        db.session.add(doc_type)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ValidationError(f"Document type '{name}' already exists", field='name')
        logger.info(f"Created document type '{name}' ({category})")
        return doc_type

    @classmethod
    @storage_errors_wrapped
    def create_template(
        cls,
        document_type_id: int,
        name: str,
        version: str,
        title: str,
        content: Dict[str, Any],
        variables: List[str],
        is_active: bool = True,
        is_default: bool = False,
        number_prefix: str = None,
        slug: str = None
    ) -> DocumentTemplate:
        """
        Create a template row.

        Raises:
            NotFound: document type does not exist
            ValidationError: a template with this name already exists
        """
        if db.session.get(DocumentType, document_type_id) is None:
            raise NotFound(f"Document type {document_type_id} not found",
                           entity='document_type', identifier=document_type_id)

        template = DocumentTemplate(
            document_type_id=document_type_id,
            name=name,
            slug=slug,
            version=version,
            title=title,
            content=content or {},
            variables=list(variables or []),
            number_prefix=number_prefix,
            is_active=is_active,
            is_default=is_default,
        )
        db.session.add(template)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ValidationError(f"Template '{name}' already exists", field='name')
        logger.info(f"Created template '{name}' v{version}")
        return template

    @classmethod
    @storage_errors_wrapped
    def create_clause(
        cls,
        template_id: int,
        clause_number: str,
        title: str,
        content: str,
        order_index: int,
        variables: List[str],
        is_required: bool = True
    ) -> TemplateClause:
        """
        Append a clause to a template.

        order_index is taken as given; callers decide the ordering.
        """
        if db.session.get(DocumentTemplate, template_id) is None:
            raise NotFound(f"Template {template_id} not found",
                           entity='template', identifier=template_id)

        clause = TemplateClause(
            template_id=template_id,
            clause_number=str(clause_number),
            title=title,
            content=content,
            order_index=order_index,
            is_required=is_required,
            variables=list(variables or []),
        )
        db.session.add(clause)
        db.session.commit()
        return clause

    # =========================================================================
    # CANONICAL DEFINITIONS
    # =========================================================================

    @classmethod
    def _add_clauses(cls, template: DocumentTemplate, definition: TemplateDefinition) -> int:
        """Stage the definition's clauses on the session. Caller commits."""
        for clause in definition.clauses:
            db.session.add(TemplateClause(
                template_id=template.id,
                clause_number=clause.clause_number,
                title=clause.title,
                content=clause.content,
                order_index=clause.order_index,
                is_required=clause.required,
                variables=list(clause.variables or clause.placeholders()),
            ))
        return len(definition.clauses)

    @classmethod
    def _stage_template(cls, definition: TemplateDefinition, document_type_id: int) -> DocumentTemplate:
        template = DocumentTemplate(
            document_type_id=document_type_id,
            name=definition.name,
            slug=definition.slug,
            version=definition.version,
            title=definition.title,
            content=definition.content(),
            variables=list(definition.variables),
            number_prefix=definition.number_prefix,
            is_active=True,
            is_default=definition.is_default,
        )
        db.session.add(template)
        db.session.flush()
        return template

    @classmethod
    def _repair_if_empty(cls, template: DocumentTemplate) -> int:
        """
        Recreate clauses for a template that has none.

        Returns the number of clauses created. Templates whose definition
        carries no clauses (the tariff schedule) are left alone.
        """
        if TemplateClause.query.filter_by(template_id=template.id).count():
            return 0

        definition = TemplateDefinitionLoader.get_by_name(template.name)
        if definition is None or not definition.clauses:
            return 0

        logger.warning(
            f"Template '{template.name}' has no clauses, recreating "
            f"{len(definition.clauses)} from definition '{definition.slug}'"
        )
        created = cls._add_clauses(template, definition)
        db.session.commit()
        return created

    @classmethod
    def _pick_document_type(cls, category: str) -> DocumentType:
        doc_type = (DocumentType.query
                    .filter_by(category=category, is_active=True)
                    .order_by(DocumentType.id)
                    .first())
        if doc_type is None:
            doc_type = DocumentType.query.order_by(DocumentType.id).first()
        if doc_type is None:
            raise MissingDocumentType()
        return doc_type

    @classmethod
    @storage_errors_wrapped
    def get_or_create_by_name(cls, name: str) -> int:
        """
        Return the id of the template named `name`, creating it if needed.

        An existing template with zero clauses is repaired. A missing
        template is created from its canonical definition under a
        document type of the same category (or the first available type).

        Raises:
            NotFound: no canonical definition exists for `name`
            MissingDocumentType: no document type exists at all
        """
        template = DocumentTemplate.query.filter_by(name=name).first()
        if template is not None:
            cls._repair_if_empty(template)
            return template.id

        definition = TemplateDefinitionLoader.get_by_name(name)
        if definition is None:
            raise NotFound(f"No template definition named '{name}'",
                           entity='template_definition', identifier=name)

        doc_type = cls._pick_document_type(definition.category)

        try:
            template = cls._stage_template(definition, doc_type.id)
            cls._add_clauses(template, definition)
            db.session.commit()
        except IntegrityError:
            # Another request created it first
            db.session.rollback()
            template = DocumentTemplate.query.filter_by(name=name).first()
            if template is None:
                raise
            logger.info(f"Template '{name}' was created concurrently, reusing id {template.id}")
            return template.id

        logger.info(f"Created template '{name}' with {len(definition.clauses)} clause(s)")
        return template.id

    @classmethod
    @storage_errors_wrapped
    def seed_definitions(cls) -> Dict[str, int]:
        """
        Create every missing type, template and clause from the definitions.

        Idempotent: run it at deployment as often as needed.

        Returns:
            Counts of what was created or repaired.
        """
        if not TemplateDefinitionLoader.is_loaded():
            TemplateDefinitionLoader.load_all()

        summary = {
            'types_created': 0,
            'templates_created': 0,
            'clauses_created': 0,
            'templates_repaired': 0,
            'templates_existing': 0,
        }

        for definition in TemplateDefinitionLoader.all():
            type_def = definition.document_type
            doc_type = DocumentType.query.filter_by(name=type_def.name).first()
            if doc_type is None:
                doc_type = DocumentType(
                    name=type_def.name,
                    category=type_def.category,
                    description=type_def.description,
                )
                db.session.add(doc_type)
                db.session.commit()
                summary['types_created'] += 1
                logger.info(f"Seeded document type '{type_def.name}'")

            template = DocumentTemplate.query.filter_by(name=definition.name).first()
            if template is not None:
                repaired = cls._repair_if_empty(template)
                if repaired:
                    summary['templates_repaired'] += 1
                    summary['clauses_created'] += repaired
                else:
                    summary['templates_existing'] += 1
                continue

            try:
                template = cls._stage_template(definition, doc_type.id)
                created = cls._add_clauses(template, definition)
                db.session.commit()
            except IntegrityError:
                db.session.rollback()
                summary['templates_existing'] += 1
                logger.info(f"Template '{definition.name}' already seeded by another process")
                continue

            summary['templates_created'] += 1
            summary['clauses_created'] += created
            logger.info(f"Seeded template '{definition.name}' ({created} clause(s))")

        logger.info(f"Template seed summary: {summary}")
        return summary
