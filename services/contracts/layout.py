"""
Page Layout Primitives

Geometry and pagination shared by every document layout. Positions are
in millimetres measured from the top-left corner of an A4 page.

Each drawing step takes a RenderState and returns the next one. Before
any line is placed the writer checks that it fits above the page-bottom
threshold and starts a new page otherwise, so no text ever lands below
PAGE_BOTTOM_MM.
"""

from typing import List

from reportlab.lib.units import mm
from reportlab.lib.utils import simpleSplit

from .types import LayoutKind, LineOp, RectOp, RenderedDocument, RenderState, TextOp

# A4 geometry (mm)
PAGE_WIDTH_MM = 210
PAGE_HEIGHT_MM = 297
MARGIN_MM = 20
CONTENT_WIDTH_MM = PAGE_WIDTH_MM - 2 * MARGIN_MM
PAGE_BOTTOM_MM = 270
LINE_HEIGHT_MM = 5

# Baseline offset inside a line box
BASELINE_OFFSET_MM = 4

BODY_FONT = 'Helvetica'
BOLD_FONT = 'Helvetica-Bold'
BODY_SIZE = 10
TITLE_SIZE = 14
SUBTITLE_SIZE = 11


def wrap_text(
    text: str,
    width_mm: float = CONTENT_WIDTH_MM,
    font: str = BODY_FONT,
    size: float = BODY_SIZE
) -> List[str]:
    """
    Split text into lines that fit `width_mm`.

    Explicit newlines are kept; blank lines come back as "".
    """
    lines = []
    for paragraph in (text or '').split('\n'):
        paragraph = paragraph.strip()
        if not paragraph:
            lines.append('')
            continue
        lines.extend(simpleSplit(paragraph, font, size, width_mm * mm))
    return lines


class PageWriter:
    """
    Collects draw operations for one document while paginating.

    Usage:
        writer = PageWriter('CONTRATO', LayoutKind.CLAUSES)
        state = writer.start()
        state = writer.centered(state, 'CONTRATO', font=BOLD_FONT, size=TITLE_SIZE)
        state = writer.paragraph(state, body)
        document = writer.finish()
    """

    def __init__(self, title: str, layout: LayoutKind):
        self.document = RenderedDocument(title=title, layout=layout)

    def start(self) -> RenderState:
        return RenderState(cursor_y=MARGIN_MM, page_index=0)

    def finish(self) -> RenderedDocument:
        return self.document

    # =========================================================================
    # PAGINATION
    # =========================================================================

    def new_page(self, state: RenderState) -> RenderState:
        page_index = state.page_index + 1
        self.document.page_count = max(self.document.page_count, page_index + 1)
        return RenderState(cursor_y=MARGIN_MM, page_index=page_index)

    def ensure_room(self, state: RenderState, height: float = LINE_HEIGHT_MM) -> RenderState:
        """Start a new page when `height` does not fit above the bottom threshold."""
        if state.cursor_y + height > PAGE_BOTTOM_MM and state.cursor_y > MARGIN_MM:
            return self.new_page(state)
        return state

    def gap(self, state: RenderState, height: float = LINE_HEIGHT_MM) -> RenderState:
        return RenderState(cursor_y=state.cursor_y + height, page_index=state.page_index)

    # =========================================================================
    # TEXT
    # =========================================================================

    def line(
        self,
        state: RenderState,
        text: str,
        font: str = BODY_FONT,
        size: float = BODY_SIZE,
        x: float = MARGIN_MM,
        align: str = 'left',
        line_height: float = LINE_HEIGHT_MM
    ) -> RenderState:
        """Draw a single line of text and advance one line."""
        state = self.ensure_room(state, line_height)
        if text:
            self.document.ops.append(TextOp(
                page_index=state.page_index,
                x=x,
                y=state.cursor_y + min(BASELINE_OFFSET_MM, line_height),
                text=text,
                font=font,
                size=size,
                align=align,
            ))
        return self.gap(state, line_height)

    def centered(
        self,
        state: RenderState,
        text: str,
        font: str = BOLD_FONT,
        size: float = TITLE_SIZE,
        line_height: float = LINE_HEIGHT_MM
    ) -> RenderState:
        """Centered text, wrapped to the content width."""
        for text_line in wrap_text(text, CONTENT_WIDTH_MM, font, size):
            state = self.line(state, text_line, font=font, size=size,
                              x=PAGE_WIDTH_MM / 2, align='center', line_height=line_height)
        return state

    def paragraph(
        self,
        state: RenderState,
        text: str,
        font: str = BODY_FONT,
        size: float = BODY_SIZE,
        x: float = MARGIN_MM,
        width_mm: float = CONTENT_WIDTH_MM
    ) -> RenderState:
        """Wrapped body text; each wrapped line paginates on its own."""
        for text_line in wrap_text(text, width_mm, font, size):
            state = self.line(state, text_line, font=font, size=size, x=x)
        return state

    # =========================================================================
    # SHAPES
    # =========================================================================

    def rule(self, state: RenderState, width: float = 0.5) -> RenderState:
        """Horizontal rule across the content width."""
        state = self.ensure_room(state, 2)
        self.document.ops.append(LineOp(
            page_index=state.page_index,
            x1=MARGIN_MM, y1=state.cursor_y,
            x2=MARGIN_MM + CONTENT_WIDTH_MM, y2=state.cursor_y,
            width=width,
        ))
        return self.gap(state, 2)

    def signature(
        self,
        state: RenderState,
        labels: List[str],
        x: float = MARGIN_MM,
        width: float = 70
    ) -> RenderState:
        """A signature line with captions below it, kept on one page."""
        block_height = LINE_HEIGHT_MM * (2 + len(labels))
        state = self.ensure_room(state, block_height)
        state = self.gap(state, LINE_HEIGHT_MM)
        self.document.ops.append(LineOp(
            page_index=state.page_index,
            x1=x, y1=state.cursor_y, x2=x + width, y2=state.cursor_y,
            width=0.5,
        ))
        state = self.gap(state, 1)
        for label in labels:
            state = self.line(state, label, x=x + width / 2, align='center')
        return state

    def table_row(
        self,
        state: RenderState,
        cells: List[str],
        column_widths: List[float],
        shaded: bool = False,
        font: str = BODY_FONT,
        padding: float = 1.5
    ) -> RenderState:
        """
        One table row. Cell text wraps inside its column; the row never
        splits across pages.
        """
        wrapped = [
            wrap_text(cell, width - 2 * padding, font, BODY_SIZE)
            for cell, width in zip(cells, column_widths)
        ]
        line_count = max(len(lines) for lines in wrapped) or 1
        row_height = line_count * LINE_HEIGHT_MM + padding

        state = self.ensure_room(state, row_height)
        if shaded:
            self.document.ops.append(RectOp(
                page_index=state.page_index,
                x=MARGIN_MM, y=state.cursor_y,
                width=sum(column_widths), height=row_height,
            ))

        x = MARGIN_MM
        for lines, width in zip(wrapped, column_widths):
            for index, text_line in enumerate(lines):
                if text_line:
                    self.document.ops.append(TextOp(
                        page_index=state.page_index,
                        x=x + padding,
                        y=state.cursor_y + index * LINE_HEIGHT_MM + BASELINE_OFFSET_MM,
                        text=text_line,
                        font=font,
                        size=BODY_SIZE,
                    ))
            x += width
        return self.gap(state, row_height)
