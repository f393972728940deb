"""
Document Generator

Creates numbered GeneratedDocument records from a template and a
resolved variable snapshot. No PDF bytes are produced here; rendering
is a separate, repeatable step.

At most one document exists per (template, rental). The composite
unique constraint on generated_documents is the check: the insert
either wins or reports the document that already exists.
"""

import logging
import threading
import time
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from models import db, DocumentTemplate, GeneratedDocument
from .decorators import storage_errors_wrapped
from .exceptions import AlreadyExists, NotFound, TransientFailure
from .template_store import TemplateStore
from .transforms import apply_transform, to_decimal
from .variable_resolver import config_value, format_document_number

logger = logging.getLogger(__name__)

MAX_NUMBER_ATTEMPTS = 3

# Amount fields spelled out in the stored snapshot
WRITTEN_AMOUNTS = ('daily_rate', 'total_amount', 'deposit_value')


class DocumentGenerator:
    """
    Persists draft documents with unique numbers.

    Usage:
        variables = VariableResolver.resolve(rental, template_variables=template.variables)
        document = DocumentGenerator.generate(template.id, variables,
                                              scope_id=franchisee_id,
                                              rental_id=rental.id)
    """

    _number_lock = threading.Lock()
    _last_millis = 0

    @classmethod
    def _next_millis(cls) -> int:
        """Epoch millis, strictly increasing within this process."""
        with cls._number_lock:
            millis = max(int(time.time() * 1000), cls._last_millis + 1)
            cls._last_millis = millis
            return millis

    @classmethod
    def next_document_number(cls, prefix: str = None) -> str:
        return format_document_number(prefix, millis=cls._next_millis())

    @classmethod
    def _snapshot(cls, resolved_data: Dict[str, Any]) -> Dict[str, Any]:
        """Copy of the variables, JSON-safe, with written amounts derived."""
        snapshot = {}
        for key, value in (resolved_data or {}).items():
            if isinstance(value, Decimal):
                value = float(value)
            elif isinstance(value, (date, datetime)):
                value = value.isoformat()
            elif value is not None and not isinstance(value, (str, int, float, bool, list, dict)):
                value = str(value)
            snapshot[key] = value

        for name in WRITTEN_AMOUNTS:
            if name == 'deposit_value' and snapshot.get(name) in (None, ''):
                continue
            amount = to_decimal(snapshot.get(name))
            if amount is not None:
                snapshot[f'{name}_written'] = apply_transform(amount, 'amount_in_words')
        return snapshot

    @classmethod
    @storage_errors_wrapped
    def generate(
        cls,
        template_id: int,
        resolved_data: Dict[str, Any],
        scope_id: str,
        rental_id: str = None,
        created_by: str = None,
        prefix: str = None
    ) -> GeneratedDocument:
        """
        Create a draft document for a template.

        Args:
            template_id: Template the document is generated from
            resolved_data: Flat variable bag (see VariableResolver)
            scope_id: Owning franchisee / tenant
            rental_id: Rental the document belongs to, if any
            created_by: User recording the document
            prefix: Number prefix; defaults to the template's prefix,
                then DEFAULT_NUMBER_PREFIX

        Returns:
            The persisted GeneratedDocument (status 'draft')

        Raises:
            NotFound: template does not exist
            AlreadyExists: a document already exists for (template, rental)
            TransientFailure: storage failure
        """
        template = TemplateStore.get_template_or_raise(template_id)
        prefix = prefix or template.number_prefix or config_value('DEFAULT_NUMBER_PREFIX') or 'CONT'
        expiry_days = int(config_value('DOCUMENT_EXPIRY_DAYS') or 7)
        rental_id = str(rental_id) if rental_id is not None else None

        for attempt in range(1, MAX_NUMBER_ATTEMPTS + 1):
            document_number = cls.next_document_number(prefix)
            snapshot = cls._snapshot(resolved_data)
            snapshot['contract_number'] = document_number

            now = datetime.utcnow()
            document = GeneratedDocument(
                template_id=template.id,
                rental_id=rental_id,
                document_number=document_number,
                resolved_data=snapshot,
                status=GeneratedDocument.STATUS_DRAFT,
                expires_at=now + timedelta(days=expiry_days),
                scope_id=str(scope_id),
                created_by=str(created_by) if created_by is not None else None,
            )
            db.session.add(document)
            try:
                db.session.commit()
            except IntegrityError:
                db.session.rollback()
                existing = cls.find_existing(template.id, rental_id)
                if existing is not None:
                    logger.info(
                        f"Document for template '{template.name}' and rental {rental_id} "
                        f"already exists: {existing.document_number}"
                    )
                    raise AlreadyExists(
                        f"Document already generated for this rental: {existing.document_number}",
                        existing_number=existing.document_number,
                        document_id=existing.id
                    )
                logger.warning(
                    f"Document number collision on {document_number} "
                    f"(attempt {attempt}/{MAX_NUMBER_ATTEMPTS})"
                )
                continue

            logger.info(
                f"Generated document {document.document_number} from template "
                f"'{template.name}' for rental {rental_id}"
            )
            return document

        raise TransientFailure(
            f"Could not allocate a unique document number after {MAX_NUMBER_ATTEMPTS} attempts"
        )

    # =========================================================================
    # QUERIES
    # =========================================================================

    @classmethod
    @storage_errors_wrapped
    def find_existing(cls, template_id: int, rental_id: str) -> Optional[GeneratedDocument]:
        """Document already generated for (template, rental), if any."""
        if rental_id is None:
            return None
        return GeneratedDocument.query.filter_by(
            template_id=template_id, rental_id=str(rental_id)
        ).first()

    @classmethod
    @storage_errors_wrapped
    def get(cls, document_id: str) -> Optional[GeneratedDocument]:
        return db.session.get(GeneratedDocument, document_id)

    @classmethod
    def get_or_raise(cls, document_id: str) -> GeneratedDocument:
        document = cls.get(document_id)
        if document is None:
            raise NotFound(f"Document {document_id} not found",
                           entity='document', identifier=document_id)
        return document

    @classmethod
    @storage_errors_wrapped
    def list_documents(cls, scope_id: str = None) -> List[GeneratedDocument]:
        """Generated documents, newest first, optionally for one scope."""
        query = GeneratedDocument.query
        if scope_id is not None:
            query = query.filter_by(scope_id=str(scope_id))
        return query.order_by(GeneratedDocument.created_at.desc(),
                              GeneratedDocument.document_number.desc()).all()

    @classmethod
    @storage_errors_wrapped
    def list_annexes(cls, rental_id: str, template_name: str) -> List[GeneratedDocument]:
        """
        Documents of a rental whose template is `template_name`.

        Matches the exact name or "<name> - ..." variants, ignoring case,
        so "Anexo VI" finds "Anexo VI - Recebimento de Caução".
        """
        name = template_name.strip().lower()
        pattern = name.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_') + ' -%'
        template_name_lower = func.lower(DocumentTemplate.name)
        return (GeneratedDocument.query
                .join(DocumentTemplate, GeneratedDocument.template_id == DocumentTemplate.id)
                .filter(GeneratedDocument.rental_id == str(rental_id),
                        or_(template_name_lower == name,
                            template_name_lower.like(pattern, escape='\\')))
                .order_by(GeneratedDocument.created_at.desc())
                .all())
