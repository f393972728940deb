"""
PDF Renderer

Turns a template, its clauses and a variable bag into PDF bytes.

Rendering happens in two passes:
    1. build_layout() substitutes placeholders and lays the text out
       into a paginated RenderedDocument (pure, no I/O)
    2. paint() draws that document with reportlab

The canvas runs in invariant mode, so the same template and variables
always produce byte-identical output.
"""

import io
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from .layouts import (
    build_clauses_layout, build_simple_layout, build_tariff_layout, select_layout,
)
from .placeholders import is_strict_default, substitute_all
from .template_store import TemplateStore
from .types import LayoutKind, LineOp, RectOp, RenderedDocument, TextOp

logger = logging.getLogger(__name__)

PAGE_WIDTH, PAGE_HEIGHT = A4


def _to_pdf_y(y_mm: float) -> float:
    """Top-down millimetres to reportlab's bottom-up points."""
    return PAGE_HEIGHT - y_mm * mm


class PDFRenderer:
    """
    Renders stored templates to PDF bytes.

    Usage:
        pdf_bytes = PDFRenderer.render(template.id, variables)

        # Inspect pagination without producing bytes
        document = PDFRenderer.build_layout(template, clauses, variables)
        print(document.page_count)
    """

    @classmethod
    def render(
        cls,
        template_id: int,
        resolved_data: Mapping[str, Any],
        strict: Optional[bool] = None
    ) -> bytes:
        """
        Render a stored template.

        Raises:
            NotFound: template does not exist
            UnresolvedVariable: strict mode and a placeholder is missing
        """
        template = TemplateStore.get_template_or_raise(template_id)
        clauses = TemplateStore.list_clauses(template.id)
        return cls.render_template(template, clauses, resolved_data, strict=strict)

    @classmethod
    def render_template(
        cls,
        template: Any,
        clauses: Sequence[Any],
        resolved_data: Mapping[str, Any],
        strict: Optional[bool] = None
    ) -> bytes:
        """Render a template object and its clauses without touching the database."""
        document = cls.build_layout(template, clauses, resolved_data, strict=strict)
        pdf_bytes = cls.paint(document)
        logger.debug(
            f"Rendered '{template.name}' ({document.layout.value}): "
            f"{document.page_count} page(s), {len(pdf_bytes)} bytes"
        )
        return pdf_bytes

    @classmethod
    def build_layout(
        cls,
        template: Any,
        clauses: Sequence[Any],
        resolved_data: Mapping[str, Any],
        strict: Optional[bool] = None
    ) -> RenderedDocument:
        """
        Substitute and lay out a template.

        Args:
            template: Object with name, title, content and optionally
                slug and document_type.category
            clauses: Objects with title, content and order_index
            resolved_data: Flat variable bag
            strict: Override the configured placeholder mode

        Returns:
            Paginated RenderedDocument
        """
        if strict is None:
            strict = is_strict_default()
        variables = dict(resolved_data or {})

        content = template.content if isinstance(template.content, dict) else {}
        document_type = getattr(template, 'document_type', None)
        category = getattr(document_type, 'category', None)
        layout = select_layout(content, template.name, getattr(template, 'slug', None), category)

        ordered = sorted(clauses, key=lambda c: (c.order_index, getattr(c, 'id', 0) or 0))
        texts: List[str] = []
        for clause in ordered:
            texts.append(clause.title or '')
            texts.append(clause.content or '')
        texts.append(template.title or '')
        filled = substitute_all(texts, variables, strict=strict, template_name=template.name)

        title = filled[-1]
        clause_texts = [(filled[i], filled[i + 1]) for i in range(0, len(filled) - 1, 2)]

        if layout == LayoutKind.TARIFF:
            return build_tariff_layout(title, content.get('subtitle'), variables)
        if layout == LayoutKind.CLAUSES:
            return build_clauses_layout(title, clause_texts, variables)
        return build_simple_layout(title, clause_texts, variables)

    @classmethod
    def paint(cls, document: RenderedDocument) -> bytes:
        """Draw a RenderedDocument onto an A4 reportlab canvas."""
        buffer = io.BytesIO()
        pdf = canvas.Canvas(buffer, pagesize=A4, invariant=1, pageCompression=1)
        pdf.setTitle(document.title)
        pdf.setCreator('contracts')

        for page_index in range(document.page_count):
            for op in document.ops_on_page(page_index):
                if isinstance(op, RectOp):
                    pdf.saveState()
                    pdf.setFillGray(op.gray)
                    pdf.rect(op.x * mm, _to_pdf_y(op.y + op.height),
                             op.width * mm, op.height * mm, fill=1, stroke=0)
                    pdf.restoreState()
                elif isinstance(op, LineOp):
                    pdf.setLineWidth(op.width)
                    pdf.line(op.x1 * mm, _to_pdf_y(op.y1), op.x2 * mm, _to_pdf_y(op.y2))
                elif isinstance(op, TextOp):
                    pdf.setFont(op.font, op.size)
                    if op.align == 'center':
                        pdf.drawCentredString(op.x * mm, _to_pdf_y(op.y), op.text)
                    elif op.align == 'right':
                        pdf.drawRightString(op.x * mm, _to_pdf_y(op.y), op.text)
                    else:
                        pdf.drawString(op.x * mm, _to_pdf_y(op.y), op.text)
            pdf.showPage()

        pdf.save()
        return buffer.getvalue()


def render_document_pdf(document: Any, strict: Optional[bool] = None) -> bytes:
    """Re-render a GeneratedDocument from its stored variable snapshot."""
    data: Dict[str, Any] = document.resolved_data or {}
    return PDFRenderer.render(document.template_id, data, strict=strict)
