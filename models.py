import uuid
from datetime import datetime

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def _new_uuid():
    return str(uuid.uuid4())


class DocumentType(db.Model):
    """Groups templates by purpose (main rental contract, annexes)."""
    __tablename__ = 'document_types'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    description = db.Column(db.Text)
    category = db.Column(db.String(50), nullable=False)  # e.g. 'rental', 'annex'
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow,
                           onupdate=datetime.utcnow)

    templates = db.relationship('DocumentTemplate', backref='document_type', lazy=True)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'category': self.category,
            'is_active': self.is_active,
        }

    def __repr__(self):
        return f'<DocumentType {self.name}>'


class DocumentTemplate(db.Model):
    """A versioned document model made of ordered clauses."""
    __tablename__ = 'document_templates'

    id = db.Column(db.Integer, primary_key=True)
    document_type_id = db.Column(db.Integer, db.ForeignKey('document_types.id'), nullable=False)
    name = db.Column(db.String(200), unique=True, nullable=False)
    slug = db.Column(db.String(100))
    version = db.Column(db.String(20), nullable=False, default='1.0')
    title = db.Column(db.String(255), nullable=False)
    content = db.Column(db.JSON, nullable=False, default=dict)  # {'layout', 'sections', ...}
    variables = db.Column(db.JSON, nullable=False, default=list)
    number_prefix = db.Column(db.String(20))
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_default = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow,
                           onupdate=datetime.utcnow)

    clauses = db.relationship('TemplateClause', backref='template', lazy=True,
                              order_by='(TemplateClause.order_index, TemplateClause.id)')

    @property
    def layout(self):
        """Layout key stored in content, or None when it must be inferred."""
        if isinstance(self.content, dict):
            return self.content.get('layout')
        return None

    def to_dict(self):
        return {
            'id': self.id,
            'document_type_id': self.document_type_id,
            'name': self.name,
            'slug': self.slug,
            'version': self.version,
            'title': self.title,
            'content': self.content,
            'variables': self.variables,
            'number_prefix': self.number_prefix,
            'is_active': self.is_active,
            'is_default': self.is_default,
        }

    def __repr__(self):
        return f'<DocumentTemplate {self.name} v{self.version}>'


class TemplateClause(db.Model):
    __tablename__ = 'template_clauses'

    id = db.Column(db.Integer, primary_key=True)
    template_id = db.Column(db.Integer, db.ForeignKey('document_templates.id'), nullable=False)
    clause_number = db.Column(db.String(20), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    content = db.Column(db.Text, nullable=False)
    order_index = db.Column(db.Integer, nullable=False)
    is_required = db.Column(db.Boolean, nullable=False, default=True)
    variables = db.Column(db.JSON, nullable=False, default=list)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'template_id': self.template_id,
            'clause_number': self.clause_number,
            'title': self.title,
            'content': self.content,
            'order_index': self.order_index,
            'is_required': self.is_required,
            'variables': self.variables,
        }

    def __repr__(self):
        return f'<TemplateClause {self.clause_number} of template {self.template_id}>'


class GeneratedDocument(db.Model):
    """
    A numbered document produced from a template for one rental.

    The (template_id, rental_id) constraint guarantees at most one
    document per template and rental. Rows without a rental are never
    constrained since NULLs compare distinct.
    """
    __tablename__ = 'generated_documents'
    __table_args__ = (
        db.UniqueConstraint('template_id', 'rental_id',
                            name='uq_generated_document_template_rental'),
    )

    STATUS_DRAFT = 'draft'
    STATUS_GENERATED = 'generated'
    STATUS_SENT = 'sent'
    STATUS_SIGNED = 'signed'
    STATUS_CANCELLED = 'cancelled'

    id = db.Column(db.String(36), primary_key=True, default=_new_uuid)
    template_id = db.Column(db.Integer, db.ForeignKey('document_templates.id'), nullable=False)
    rental_id = db.Column(db.String(64), index=True)
    document_number = db.Column(db.String(64), unique=True, nullable=False)
    resolved_data = db.Column(db.JSON, nullable=False, default=dict)
    rendered_url = db.Column(db.String(500))
    status = db.Column(db.String(20), nullable=False, default=STATUS_DRAFT)
    external_signature_ref = db.Column(db.String(255), index=True)
    signed_at = db.Column(db.DateTime)
    expires_at = db.Column(db.DateTime)
    scope_id = db.Column(db.String(64), nullable=False, index=True)  # franchisee / tenant
    created_by = db.Column(db.String(64))
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow,
                           onupdate=datetime.utcnow)

    # No cascade: deleting a template never removes generated documents
    template = db.relationship('DocumentTemplate', backref=db.backref('generated_documents', lazy=True))

    def to_dict(self):
        return {
            'id': self.id,
            'template_id': self.template_id,
            'rental_id': self.rental_id,
            'document_number': self.document_number,
            'resolved_data': self.resolved_data,
            'rendered_url': self.rendered_url,
            'status': self.status,
            'external_signature_ref': self.external_signature_ref,
            'signed_at': self.signed_at.isoformat() if self.signed_at else None,
            'expires_at': self.expires_at.isoformat() if self.expires_at else None,
            'scope_id': self.scope_id,
            'created_by': self.created_by,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f'<GeneratedDocument {self.document_number} ({self.status})>'
