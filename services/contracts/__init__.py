"""
Rental Contract Document System

Template-driven generation of numbered rental contracts and annexes.
Canonical templates are defined in YAML files, seeded into the
database, filled from rental data and rendered to PDF.

Usage:
    from services.contracts import (
        TemplateStore, VariableResolver, DocumentGenerator, StatusWorkflow, PDFRenderer
    )

    template = TemplateStore.get_default_template('rental')
    variables = VariableResolver.resolve(rental, prefix=template.number_prefix,
                                         template_variables=template.variables)
    document = DocumentGenerator.generate(template.id, variables,
                                          scope_id=franchisee_id, rental_id=rental_id)
    pdf_bytes = PDFRenderer.render(template.id, document.resolved_data)
    StatusWorkflow.update_status(document.id, 'generated', {'rendered_url': url})
"""

from .types import (
    PLACEHOLDER_PATTERN,
    DocumentStatus,
    LayoutKind,
    DocumentTypeDefinition,
    ClauseDefinition,
    TemplateDefinition,
    RenderState,
    TextOp,
    LineOp,
    RectOp,
    RenderedDocument,
)

from .exceptions import (
    DocumentError,
    ConfigurationError,
    MissingDocumentType,
    ValidationError,
    NotFound,
    AlreadyExists,
    UnresolvedVariable,
    InvalidTransition,
    TransientFailure,
)

from .loader import TemplateDefinitionLoader
from .template_store import TemplateStore
from .variable_resolver import VariableResolver, format_document_number
from .placeholders import find_placeholders, substitute, substitute_all
from .generator import DocumentGenerator
from .status_workflow import StatusWorkflow, allowed_transitions
from .pdf_renderer import PDFRenderer, render_document_pdf
from .transforms import TRANSFORMS, apply_transform, register_transform

__all__ = [
    # Types
    'PLACEHOLDER_PATTERN',
    'DocumentStatus',
    'LayoutKind',
    'DocumentTypeDefinition',
    'ClauseDefinition',
    'TemplateDefinition',
    'RenderState',
    'TextOp',
    'LineOp',
    'RectOp',
    'RenderedDocument',

    # Exceptions
    'DocumentError',
    'ConfigurationError',
    'MissingDocumentType',
    'ValidationError',
    'NotFound',
    'AlreadyExists',
    'UnresolvedVariable',
    'InvalidTransition',
    'TransientFailure',

    # Services
    'TemplateDefinitionLoader',
    'TemplateStore',
    'VariableResolver',
    'format_document_number',
    'find_placeholders',
    'substitute',
    'substitute_all',
    'DocumentGenerator',
    'StatusWorkflow',
    'allowed_transitions',
    'PDFRenderer',
    'render_document_pdf',

    # Transforms
    'TRANSFORMS',
    'apply_transform',
    'register_transform',
]
