"""
Status Workflow

Lifecycle of a generated document:

    draft ──> generated ──> sent ──> signed
      │           │          │         │
      └───────────┴──────────┴─────────┴──> cancelled

draft may also skip straight to sent. cancelled is terminal. Setting
the status a document already has is allowed and only applies the
extra fields.
"""

import logging
from datetime import datetime
from typing import Any, Dict, FrozenSet, Optional

from models import db, GeneratedDocument
from .decorators import storage_errors_wrapped
from .exceptions import InvalidTransition, NotFound, ValidationError
from .generator import DocumentGenerator
from .types import DocumentStatus

logger = logging.getLogger(__name__)

TRANSITIONS: Dict[str, FrozenSet[str]] = {
    DocumentStatus.DRAFT.value: frozenset({'generated', 'sent', 'cancelled'}),
    DocumentStatus.GENERATED.value: frozenset({'sent', 'cancelled'}),
    DocumentStatus.SENT.value: frozenset({'signed', 'cancelled'}),
    DocumentStatus.SIGNED.value: frozenset({'cancelled'}),
    DocumentStatus.CANCELLED.value: frozenset(),
}

# Fields callers may patch alongside a status change
PATCHABLE_FIELDS = ('rendered_url', 'external_signature_ref', 'signed_at', 'expires_at')
DATETIME_FIELDS = ('signed_at', 'expires_at')

# Signature provider status -> document status
PROVIDER_STATUS_MAP = {
    'signed': 'signed',
    'completed': 'signed',
    'rejected': 'cancelled',
    'expired': 'cancelled',
    'cancelled': 'cancelled',
}

# Payload keys that may carry the provider's request id
SIGNATURE_REF_KEYS = ('signature_request_id', 'document_id', 'id')


def allowed_transitions(status: str) -> FrozenSet[str]:
    """Statuses reachable from `status` (excluding itself)."""
    return TRANSITIONS.get(status, frozenset())


def _parse_datetime(field: str, value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise ValidationError(f"Invalid datetime for {field}: {value!r}", field=field)
        if parsed.tzinfo is not None:
            parsed = (parsed - parsed.utcoffset()).replace(tzinfo=None)
        return parsed
    raise ValidationError(f"Invalid datetime for {field}: {value!r}", field=field)


class StatusWorkflow:
    """
    Validated status changes, deletion and signature-provider events.

    Usage:
        StatusWorkflow.update_status(doc.id, 'sent',
                                     {'external_signature_ref': 'req_123',
                                      'rendered_url': url})
        StatusWorkflow.apply_signature_event({'signature_request_id': 'req_123',
                                              'status': 'completed'})
    """

    allowed_transitions = staticmethod(allowed_transitions)

    @classmethod
    def _validate_extra(cls, extra: Dict[str, Any]) -> Dict[str, Any]:
        unknown = sorted(set(extra) - set(PATCHABLE_FIELDS))
        if unknown:
            raise ValidationError(
                f"Fields cannot be updated with a status change: {unknown}",
                field=unknown[0]
            )
        cleaned = dict(extra)
        for field in DATETIME_FIELDS:
            if field in cleaned:
                cleaned[field] = _parse_datetime(field, cleaned[field])
        return cleaned

    @classmethod
    @storage_errors_wrapped
    def update_status(
        cls,
        document_id: str,
        new_status: str,
        extra: Optional[Dict[str, Any]] = None
    ) -> GeneratedDocument:
        """
        Move a document to `new_status` and merge-patch `extra` fields.

        Raises:
            ValidationError: unknown status or non-patchable field
            NotFound: document does not exist
            InvalidTransition: change not allowed from the current status
        """
        if new_status not in TRANSITIONS:
            raise ValidationError(f"Unknown status: {new_status}", field='status')
        extra = cls._validate_extra(extra or {})

        document = DocumentGenerator.get_or_raise(document_id)
        cls._apply_status(document, new_status, extra)
        db.session.commit()
        return document

    @classmethod
    def _apply_status(cls, document: GeneratedDocument, new_status: str,
                      extra: Dict[str, Any]) -> None:
        """Change the status in the session; the caller commits."""
        current = document.status
        if new_status != current and new_status not in allowed_transitions(current):
            raise InvalidTransition(current, new_status)

        for field, value in extra.items():
            setattr(document, field, value)

        if new_status == DocumentStatus.SIGNED.value and document.signed_at is None:
            document.signed_at = datetime.utcnow()

        document.status = new_status
        document.updated_at = datetime.utcnow()

        if new_status != current:
            logger.info(f"Document {document.document_number}: {current} -> {new_status}")
        else:
            logger.debug(f"Document {document.document_number}: patched {sorted(extra)}")

    @classmethod
    @storage_errors_wrapped
    def delete(cls, document_id: str) -> None:
        """
        Remove a generated document record.

        Externally stored files are not touched.
        """
        document = DocumentGenerator.get_or_raise(document_id)
        number = document.document_number
        db.session.delete(document)
        db.session.commit()
        logger.info(f"Deleted document {number}")

    @classmethod
    def _provider_status(cls, payload: Dict[str, Any]) -> str:
        status = payload.get('status')
        if not status:
            event = str(payload.get('event') or '')
            status = event.rsplit('_', 1)[-1] if event.startswith('document_') else event
        return PROVIDER_STATUS_MAP.get(str(status).lower(), DocumentStatus.SENT.value)

    @classmethod
    @storage_errors_wrapped
    def apply_signature_event(cls, payload: Dict[str, Any]) -> GeneratedDocument:
        """
        Apply a signature provider callback to the matching document.

        The document is found by its external_signature_ref. Provider
        status signed/completed signs the document (recording the
        signed file's download_url), rejected/expired cancels it, and
        anything else marks it sent. A document still in draft or
        generated passes through sent before being signed. Events that
        would only mark a signed or cancelled document as sent are ignored.

        Raises:
            ValidationError: payload carries no request id
            NotFound: no document has that reference
        """
        payload = payload or {}
        reference = next((payload.get(key) for key in SIGNATURE_REF_KEYS if payload.get(key)), None)
        if not reference:
            raise ValidationError("Signature event has no request id", field='signature_request_id')

        document = GeneratedDocument.query.filter_by(external_signature_ref=str(reference)).first()
        if document is None:
            raise NotFound(f"No document for signature request {reference}",
                           entity='document', identifier=reference)

        target = cls._provider_status(payload)
        logger.info(f"Signature event for {document.document_number}: {payload.get('event') or target}")

        # Late informational events never move a finished document back
        if target == DocumentStatus.SENT.value and document.status in (
                DocumentStatus.SIGNED.value, DocumentStatus.CANCELLED.value):
            logger.debug(f"Ignoring '{payload.get('event')}' for {document.status} document")
            return document

        extra = {}
        if target == DocumentStatus.SIGNED.value:
            document_info = payload.get('document')
            download_url = document_info.get('download_url') if isinstance(document_info, dict) else None
            download_url = download_url or payload.get('document_url')
            if download_url:
                extra['rendered_url'] = download_url
            if payload.get('signed_at'):
                extra['signed_at'] = payload['signed_at']
        extra = cls._validate_extra(extra)

        # The pass through sent and the final status land in one commit
        if target == DocumentStatus.SIGNED.value and document.status in (
                DocumentStatus.DRAFT.value, DocumentStatus.GENERATED.value):
            cls._apply_status(document, DocumentStatus.SENT.value, {})
        cls._apply_status(document, target, extra)
        db.session.commit()
        return document
