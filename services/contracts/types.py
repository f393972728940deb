"""
Contract System Type Definitions

Dataclasses representing template definitions loaded from YAML and the
intermediate page model produced by the renderer. Definitions are
immutable after loading and validated on startup.
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any, Tuple
from enum import Enum


PLACEHOLDER_PATTERN = re.compile(r'\{\{([A-Za-z0-9_]+)\}\}')


class DocumentStatus(Enum):
    """Lifecycle of a generated document."""
    DRAFT = "draft"
    GENERATED = "generated"
    SENT = "sent"
    SIGNED = "signed"
    CANCELLED = "cancelled"


class LayoutKind(Enum):
    """Rendering strategies available to templates."""
    CLAUSES = "clauses"
    SIMPLE = "simple"
    TARIFF = "tariff"


@dataclass(frozen=True)
class DocumentTypeDefinition:
    """Document type a template is filed under (e.g. rental, annex)."""
    name: str
    category: str
    description: Optional[str] = None


@dataclass(frozen=True)
class ClauseDefinition:
    """
    One ordered block of placeholder-bearing text.

    Attributes:
        clause_number: Display number ("1", "2.1", ...)
        title: Bold heading shown by the clause layout
        content: Body text with {{placeholders}}
        order_index: Render position within the template
        required: Whether the clause is mandatory
        variables: Placeholders this clause uses
    """
    clause_number: str
    title: str
    content: str
    order_index: int
    required: bool = True
    variables: Tuple[str, ...] = ()

    def placeholders(self) -> List[str]:
        """Placeholders referenced in the clause text, in order of appearance."""
        seen = []
        for name in PLACEHOLDER_PATTERN.findall(self.content):
            if name not in seen:
                seen.append(name)
        return seen


@dataclass(frozen=True)
class TemplateDefinition:
    """
    Complete canonical definition of a template loaded from YAML.

    One YAML file = one TemplateDefinition. This is the single source of
    legal text used to seed and repair the stored templates.
    """
    schema_version: str
    slug: str
    name: str
    title: str
    version: str
    document_type: DocumentTypeDefinition
    layout: LayoutKind
    number_prefix: str
    variables: Tuple[str, ...]
    clauses: Tuple[ClauseDefinition, ...]
    subtitle: Optional[str] = None
    is_default: bool = False

    @property
    def category(self) -> str:
        return self.document_type.category

    def content(self) -> Dict[str, Any]:
        """Structured sections stored on the template row."""
        sections = [
            {'title': clause.title, 'content': clause.content}
            for clause in self.clauses
        ]
        data = {'layout': self.layout.value, 'slug': self.slug, 'sections': sections}
        if self.subtitle:
            data['subtitle'] = self.subtitle
        return data

    def undeclared_placeholders(self) -> List[str]:
        """Placeholders used in clause text but missing from `variables`."""
        declared = set(self.variables)
        missing = []
        for clause in self.clauses:
            for name in clause.placeholders():
                if name not in declared and name not in missing:
                    missing.append(name)
        return missing

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TemplateDefinition':
        """
        Create a TemplateDefinition from a parsed YAML dict.

        This handles the conversion from raw dict to typed dataclasses.
        """
        type_data = data.get('document_type', {})
        document_type = DocumentTypeDefinition(
            name=type_data['name'],
            category=type_data['category'],
            description=type_data.get('description')
        )

        clauses = []
        for clause_data in data.get('clauses', []):
            clauses.append(ClauseDefinition(
                clause_number=str(clause_data['clause_number']),
                title=clause_data['title'],
                content=clause_data['content'].rstrip('\n'),
                order_index=clause_data['order_index'],
                required=clause_data.get('required', True),
                variables=tuple(clause_data.get('variables', []))
            ))

        return cls(
            schema_version=str(data['schema_version']),
            slug=data['slug'],
            name=data['name'],
            title=data['title'],
            version=str(data.get('version', '1.0')),
            document_type=document_type,
            layout=LayoutKind(data['layout']),
            number_prefix=data.get('number_prefix', 'CONT'),
            variables=tuple(data.get('variables', [])),
            clauses=tuple(sorted(clauses, key=lambda c: c.order_index)),
            subtitle=data.get('subtitle'),
            is_default=data.get('is_default', False)
        )


# =============================================================================
# RENDER MODEL
# =============================================================================

@dataclass(frozen=True)
class RenderState:
    """
    Drawing position threaded through every layout step.

    cursor_y is measured in millimetres from the top edge of the page.
    """
    cursor_y: float
    page_index: int = 0


@dataclass(frozen=True)
class TextOp:
    """A single line of text drawn at (x, y) mm from the top-left corner."""
    page_index: int
    x: float
    y: float
    text: str
    font: str = 'Helvetica'
    size: float = 10
    align: str = 'left'


@dataclass(frozen=True)
class LineOp:
    """A straight rule between two points (mm, top-down)."""
    page_index: int
    x1: float
    y1: float
    x2: float
    y2: float
    width: float = 0.5


@dataclass(frozen=True)
class RectOp:
    """A filled rectangle; (x, y) is its top-left corner."""
    page_index: int
    x: float
    y: float
    width: float
    height: float
    gray: float = 0.93


@dataclass
class RenderedDocument:
    """
    Paginated draw operations for one document.

    Produced by the layouts, consumed by the PDF painter. Kept separate
    from the PDF bytes so pagination can be inspected directly.
    """
    title: str
    layout: LayoutKind
    page_count: int = 1
    ops: List[Any] = field(default_factory=list)

    def ops_on_page(self, page_index: int) -> List[Any]:
        return [op for op in self.ops if op.page_index == page_index]

    def text_ops(self) -> List[TextOp]:
        return [op for op in self.ops if isinstance(op, TextOp)]

    def text(self) -> str:
        """All drawn text joined by newlines, in drawing order."""
        return '\n'.join(op.text for op in self.text_ops())
