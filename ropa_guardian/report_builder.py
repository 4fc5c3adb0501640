"""
Paginated Report Builder
========================

A small layout engine shared by every PDF report.  Content is laid out
top to bottom on fixed-size A4 pages with a 48pt margin and a 14pt line
height.  Before each row is placed the builder checks the remaining
vertical space; when one more row would cross the bottom margin the
current page is committed and a fresh page is started with the cursor
back at the top margin.  Committed pages are never revisited.

Layout is recorded as a list of ``ReportPage`` objects holding the placed
lines, which keeps pagination inspectable; ``render`` turns the pages into
PDF bytes with the ReportLab canvas.
"""

from __future__ import annotations

import io
from dataclasses import dataclass, field
from typing import Any, Iterator, List, Optional, Sequence, Tuple

from reportlab.lib.pagesizes import A4
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

MARGIN = 48
LINE_HEIGHT = 14
LABEL_WIDTH = 130
BODY_SIZE = 11
HEADING_SIZE = 13
TITLE_SIZE = 18
SECTION_GAP_AFTER = 4
LABEL_PADDING = 6

FONT_REGULAR = "Helvetica"
FONT_BOLD = "Helvetica-Bold"

PLACEHOLDER = "N/A"


def format_value(value: Any) -> str:
    """Render a field value as text: lists are joined with ", ", empty values become "N/A"."""
    if isinstance(value, (list, tuple, set)):
        value = ", ".join(str(item) for item in value if item not in (None, ""))
    if value is None:
        return PLACEHOLDER
    text = str(value).strip()
    return text or PLACEHOLDER


@dataclass(frozen=True)
class WrappedText:
    """Greedy word wrap of ``text`` into lines no wider than ``max_width``.

    Iterating yields the lines lazily; every iteration starts over from
    the first word, so the same object can be walked any number of times.
    A single word wider than ``max_width`` occupies a line of its own.
    """
    text: str
    max_width: float
    font_name: str = FONT_REGULAR
    size: float = BODY_SIZE

    def __iter__(self) -> Iterator[str]:
        current = ""
        for word in self.text.split():
            candidate = f"{current} {word}" if current else word
            if stringWidth(candidate, self.font_name, self.size) <= self.max_width:
                current = candidate
            else:
                if current:
                    yield current
                current = word
        if current:
            yield current


def wrap_text(text: str, max_width: float, font_name: str = FONT_REGULAR, size: float = BODY_SIZE) -> WrappedText:
    return WrappedText(text or "", max_width, font_name, size)


@dataclass(frozen=True)
class PlacedLine:
    text: str
    x: float
    y: float
    font_name: str
    size: float


@dataclass
class ReportPage:
    width: float
    height: float
    lines: List[PlacedLine] = field(default_factory=list)


class ReportBuilder:
    """Stateful page/cursor builder.

    Example:
        >>> builder = ReportBuilder(title="Example")
        >>> builder.write("Heading", size=TITLE_SIZE, bold=True)
        >>> builder.label_value("Owner:", "Data Protection Office")
        >>> pdf_bytes = builder.render()
    """

    def __init__(
        self,
        title: str = "",
        page_size: Tuple[float, float] = A4,
        margin: float = MARGIN,
        line_height: float = LINE_HEIGHT,
    ) -> None:
        self.title = title
        self.width, self.height = page_size
        self.margin = margin
        self.line_height = line_height
        self._pages: List[ReportPage] = []
        self.y = 0.0
        self._start_page()

    @property
    def pages(self) -> Sequence[ReportPage]:
        return tuple(self._pages)

    @property
    def content_width(self) -> float:
        return self.width - 2 * self.margin

    def _start_page(self) -> None:
        self._pages.append(ReportPage(self.width, self.height))
        self.y = self.height - self.margin

    def ensure_space(self, lines: int = 1) -> None:
        """Start a new page unless ``lines`` more rows fit above the bottom margin."""
        if self.y - lines * self.line_height < self.margin:
            self._start_page()

    def _place(self, text: str, x: float, size: float, bold: bool) -> None:
        font_name = FONT_BOLD if bold else FONT_REGULAR
        self._pages[-1].lines.append(PlacedLine(text, x, self.y, font_name, size))

    def write(self, text: str, size: float = BODY_SIZE, bold: bool = False, x: Optional[float] = None) -> None:
        """Draw one line at the cursor and move down one line height."""
        self.ensure_space(1)
        self._place(text, self.margin if x is None else x, size, bold)
        self.y -= self.line_height

    def spacer(self, lines: float = 0.5) -> None:
        self.y -= lines * self.line_height

    def section(self, title: str, size: float = HEADING_SIZE) -> None:
        """Draw a bold heading, moving to a new page unless a row fits under it."""
        self.spacer(0.5)
        if self.y - 2 * self.line_height - SECTION_GAP_AFTER < self.margin:
            self._start_page()
        self.write(title, size=size, bold=True)
        self.y -= SECTION_GAP_AFTER

    def paragraph(self, text: str, size: float = BODY_SIZE, bold: bool = False) -> None:
        """Wrap ``text`` to the full content width and draw each line as a row."""
        font_name = FONT_BOLD if bold else FONT_REGULAR
        for line in wrap_text(text, self.content_width, font_name, size):
            self.write(line, size=size, bold=bold)

    def label_value(self, label: str, value: Any, label_width: float = LABEL_WIDTH) -> None:
        """Draw a bold label at the margin and the wrapped value in the column after it.

        The first value line shares the label's row when the label fits in
        the label column; a wider label gets a row of its own.
        """
        value_x = self.margin + label_width
        max_width = self.width - self.margin - value_x
        lines = list(wrap_text(format_value(value), max_width)) or [PLACEHOLDER]

        if stringWidth(label, FONT_BOLD, BODY_SIZE) + LABEL_PADDING > label_width:
            self.write(label, bold=True)
        else:
            self.ensure_space(1)
            self._place(label, self.margin, BODY_SIZE, bold=True)
            self._place(lines.pop(0), value_x, BODY_SIZE, bold=False)
            self.y -= self.line_height
        for line in lines:
            self.write(line, x=value_x)

    def render(self) -> bytes:
        """Produce the PDF document for every page laid out so far."""
        buffer = io.BytesIO()
        pdf = canvas.Canvas(buffer, pagesize=(self.width, self.height))
        if self.title:
            pdf.setTitle(self.title)
        for page in self._pages:
            for line in page.lines:
                pdf.setFont(line.font_name, line.size)
                pdf.drawString(line.x, line.y, line.text)
            pdf.showPage()
        pdf.save()
        buffer.seek(0)
        return buffer.getvalue()
