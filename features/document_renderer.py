#PDF reports
"""
Paginated document renderer.

Lays a header + row matrix out across fixed-size pages and attaches a chart
built from the aggregation output. Work is split in three layers:

1. Layout table (LAYOUTS): page size, column offsets, fonts and the chart
   band floor for each export kind. Configuration, not computation.
2. Pure planning and geometry: plan_pages() decides which rows go on which
   page and where the chart lands; trend_chart_geometry() and
   category_chart_geometry() turn values normalized to [0, 1] into
   rectangles, lines and labels.
3. Drawing: render_document() replays the plan and geometry on a reportlab
   canvas.

Per page: the title sits at the top margin, the header row follows, then
rows stream downward one line height at a time until the cursor would cross
the page's lower boundary. A page that hosts a chart has a higher boundary
(the chart band floor), so the chart goes on the last table page when its
rows fit above the band, and on one extra page otherwise.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from enum import Enum
from io import BytesIO
from typing import Optional, Sequence, List, Tuple, Dict
import math

from reportlab.lib import colors
from reportlab.pdfgen.canvas import Canvas

from core.utils import FormatHelper
from features.aggregation import MonthlyBucket, CategoryTotal
from features.renderers import Cell

PDF_MIME_TYPE = "application/pdf"

FONT_NAME = "Helvetica"
NO_DATA_TEXT = "No data."
ELLIPSIS = "…"
CELL_TEXT_BUDGET = 40
CATEGORY_LABEL_BUDGET = 20

MAX_TREND_MONTHS = 12
MAX_CHART_CATEGORIES = 10

# Palette
CREDIT_COLOR = colors.Color(0.09, 0.64, 0.29)
DEBIT_COLOR = colors.Color(0.86, 0.15, 0.15)
BAR_COLOR = colors.Color(0.22, 0.51, 0.96)
AXIS_COLOR = colors.Color(0.8, 0.8, 0.8)
TEXT_COLOR = colors.black

FILL_COLORS: Dict[str, colors.Color] = {
    'credit': CREDIT_COLOR,
    'debit': DEBIT_COLOR,
    'bar': BAR_COLOR,
}


class ChartKind(Enum):
    TREND = "trend"
    CATEGORY = "category"


# ================================================================
# Layout configuration
# ================================================================

@dataclass(frozen=True)
class DocumentLayout:
    """Fixed page geometry for one export kind."""
    title: str
    page_size: Tuple[float, float]
    col_widths: Tuple[float, ...]
    font_size: float
    line_height: float
    title_gap: float
    margin: float = 40
    title_size: float = 14
    chart: Optional[ChartKind] = None
    chart_floor: Optional[float] = None

    def __post_init__(self):
        if not self.col_widths or any(w <= 0 for w in self.col_widths):
            raise ValueError(f"{self.title}: column widths must be positive, got {self.col_widths}")
        if self.line_height <= 0:
            raise ValueError(f"{self.title}: line height must be positive")
        if (self.chart is None) != (self.chart_floor is None):
            raise ValueError(f"{self.title}: chart and chart_floor go together")
        if self.rows_per_page(self.margin) < 1:
            raise ValueError(f"{self.title}: page cannot hold a single row")

    @property
    def width(self) -> float:
        return self.page_size[0]

    @property
    def height(self) -> float:
        return self.page_size[1]

    @property
    def title_y(self) -> float:
        return self.height - self.margin

    @property
    def header_y(self) -> float:
        return self.title_y - self.title_gap

    @property
    def first_row_y(self) -> float:
        return self.header_y - self.line_height

    def rows_per_page(self, floor: float) -> int:
        """Rows drawn while the cursor stays strictly above floor."""
        return max(0, math.ceil((self.first_row_y - floor) / self.line_height))

    @property
    def table_capacity(self) -> int:
        """Row capacity of a table-only page."""
        return self.rows_per_page(self.margin)

    @property
    def chart_capacity(self) -> int:
        """Row capacity of a page that also hosts the chart."""
        if self.chart_floor is None:
            return 0
        return self.rows_per_page(self.chart_floor)


LAYOUTS: Dict[str, DocumentLayout] = {
    'transactions': DocumentLayout(
        title="Transactions Export",
        page_size=(842, 595),
        col_widths=(90, 45, 65, 80, 90, 90, 150, 110, 70, 120),
        font_size=9,
        line_height=14,
        title_gap=20,
    ),
    'monthly': DocumentLayout(
        title="Monthly Summary",
        page_size=(595, 842),
        col_widths=(120, 180, 180),
        font_size=10,
        line_height=16,
        title_gap=22,
        chart=ChartKind.TREND,
        chart_floor=320,
    ),
    'expenses': DocumentLayout(
        title="Expense by Category",
        page_size=(595, 842),
        col_widths=(240, 240),
        font_size=10,
        line_height=16,
        title_gap=22,
        chart=ChartKind.CATEGORY,
        chart_floor=340,
    ),
}


# ================================================================
# Pagination
# ================================================================

@dataclass(frozen=True)
class PagePlan:
    row_start: int
    row_end: int
    chart: bool = False

    @property
    def row_count(self) -> int:
        return self.row_end - self.row_start


def plan_pages(row_count: int, layout: DocumentLayout) -> List[PagePlan]:
    """
    Split row_count rows into pages.

    Table pages hold table_capacity rows each, giving ceil(N / K) of them.
    When the layout has a chart, it joins the last table page if that
    page's rows fit above the chart band, else it gets a page of its own.
    Zero rows plan no pages (the no-data page is not a table page).
    """
    if row_count <= 0:
        return []

    capacity = layout.table_capacity
    pages = [
        PagePlan(row_start=start, row_end=min(start + capacity, row_count))
        for start in range(0, row_count, capacity)
    ]

    if layout.chart is not None:
        last = pages[-1]
        if last.row_count <= layout.chart_capacity:
            pages[-1] = replace(last, chart=True)
        else:
            pages.append(PagePlan(row_start=row_count, row_end=row_count, chart=True))

    return pages


def truncate_text(text: str, budget: int = CELL_TEXT_BUDGET) -> str:
    """Cut text longer than budget to budget-3 characters plus an ellipsis."""
    if len(text) > budget:
        return text[: budget - 3] + ELLIPSIS
    return text


def cell_text(value: Cell, locale: str = "en_US") -> str:
    """Display text of one table cell."""
    if value is None:
        return ""
    if isinstance(value, float):
        return FormatHelper.format_number(value, locale)
    return str(value)


# ================================================================
# Chart geometry (backend independent)
# ================================================================

@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float
    fill: str


@dataclass(frozen=True)
class Line:
    x1: float
    y1: float
    x2: float
    y2: float


@dataclass(frozen=True)
class Label:
    x: float
    y: float
    text: str
    size: float


@dataclass(frozen=True)
class ChartGeometry:
    rects: List[Rect] = field(default_factory=list)
    lines: List[Line] = field(default_factory=list)
    labels: List[Label] = field(default_factory=list)
    height: float = 0


def normalize(values: Sequence[float]) -> List[float]:
    """Scale values into [0, 1] against the largest one; all zeros when max <= 0."""
    peak = max(values, default=0.0)
    if peak <= 0:
        return [0.0 for _ in values]
    return [max(0.0, v) / peak for v in values]


def top_categories(totals: Sequence[CategoryTotal], limit: int = MAX_CHART_CATEGORIES) -> List[CategoryTotal]:
    """Categories ranked by total, largest first (stable for ties)."""
    return sorted(totals, key=lambda item: item.total, reverse=True)[:limit]


def trend_chart_geometry(
    buckets: Sequence[MonthlyBucket],
    left: float,
    top: float,
    width: float,
    height: float = 220
) -> ChartGeometry:
    """
    Paired credit/debit bars for the most recent months.

    Bar heights are fractions of the tallest visible value times the chart
    height, standing on the baseline at top - height.
    """
    recent = list(buckets)[-MAX_TREND_MONTHS:]
    baseline = top - height
    geometry = ChartGeometry(
        lines=[
            Line(left, baseline, left + width, baseline),
            Line(left, baseline, left, top),
        ],
        height=height,
    )

    # Legend
    geometry.rects.append(Rect(left, top + 4, 8, 8, 'credit'))
    geometry.labels.append(Label(left + 12, top + 3, "Income", 9))
    geometry.rects.append(Rect(left + 70, top + 4, 8, 8, 'debit'))
    geometry.labels.append(Label(left + 84, top + 3, "Expense", 9))

    if not recent:
        return geometry

    scaled = normalize([value for m in recent for value in (m.credit_total, m.debit_total)])
    group_width = width / len(recent)
    bar_width = max(6.0, (group_width - 8) / 2)

    for i, month in enumerate(recent):
        group_x = left + i * group_width + 4
        credit_h = round(scaled[2 * i] * height)
        debit_h = round(scaled[2 * i + 1] * height)
        geometry.rects.append(Rect(group_x, baseline, bar_width, credit_h, 'credit'))
        geometry.rects.append(Rect(group_x + bar_width + 2, baseline, bar_width, debit_h, 'debit'))
        geometry.labels.append(Label(group_x, baseline - 12, month.month[2:], 7))

    return geometry


def category_chart_geometry(
    totals: Sequence[CategoryTotal],
    left: float,
    top: float,
    width: float,
    currency: str = "USD",
    locale: str = "en_US",
    label_width: float = 100
) -> ChartGeometry:
    """
    Horizontal bars for the top categories, longest first.

    Bar length is (total / largest visible total) * the width left of the
    label column.
    """
    ranked = top_categories(totals)
    height = min(260, len(ranked) * 20 + 30)
    bar_area = width - label_width
    origin_x = left + label_width
    baseline = top - height

    geometry = ChartGeometry(
        lines=[
            Line(origin_x, top, origin_x, baseline),
            Line(left, baseline, left + width, baseline),
        ],
        height=height,
    )

    for i, (item, fraction) in enumerate(zip(ranked, normalize([it.total for it in ranked]))):
        bar_y = top - 20 - i * 20
        bar_w = max(2, round(fraction * bar_area))
        geometry.labels.append(Label(left, bar_y, truncate_text(item.category, CATEGORY_LABEL_BUDGET), 8))
        geometry.rects.append(Rect(origin_x, bar_y, bar_w, 10, 'bar'))
        value_text = FormatHelper.format_currency(item.total, currency, locale)
        # Value sits inside the bar end when the bar reaches the right edge
        value_x = origin_x + bar_w + 4
        if bar_w > bar_area - 60:
            value_x = origin_x + bar_w - 60
        geometry.labels.append(Label(value_x, bar_y + 1, value_text, 7))

    return geometry


# ================================================================
# Drawing
# ================================================================

def _draw_geometry(canvas: Canvas, geometry: ChartGeometry) -> None:
    canvas.saveState()
    canvas.setStrokeColor(AXIS_COLOR)
    canvas.setLineWidth(1)
    for line in geometry.lines:
        canvas.line(line.x1, line.y1, line.x2, line.y2)

    for rect in geometry.rects:
        canvas.setFillColor(FILL_COLORS[rect.fill])
        canvas.rect(rect.x, rect.y, rect.width, rect.height, stroke=0, fill=1)

    canvas.setFillColor(TEXT_COLOR)
    for label in geometry.labels:
        canvas.setFont(FONT_NAME, label.size)
        canvas.drawString(label.x, label.y, label.text)
    canvas.restoreState()


def _chart_geometry(
    layout: DocumentLayout,
    cursor_y: float,
    monthly: Sequence[MonthlyBucket],
    categories: Sequence[CategoryTotal],
    currency: str,
    locale: str
) -> ChartGeometry:
    left = layout.margin
    top = cursor_y - 16
    width = layout.width - layout.margin * 2
    if layout.chart is ChartKind.TREND:
        return trend_chart_geometry(monthly, left, top, width)
    if layout.chart is ChartKind.CATEGORY:
        return category_chart_geometry(categories, left, top, width, currency=currency, locale=locale)
    raise ValueError(f"{layout.title}: no chart configured")


def render_document(
    layout: DocumentLayout,
    headers: Sequence[str],
    rows: Sequence[Sequence[Cell]],
    *,
    monthly: Sequence[MonthlyBucket] = (),
    categories: Sequence[CategoryTotal] = (),
    currency: str = "USD",
    locale: str = "en_US",
    page_compression: bool = True
) -> bytes:
    """
    Render the paginated PDF.

    Zero rows produce a single page carrying the "No data." marker and
    no chart.

    Raises:
        ValueError: If headers or a row do not match the layout's columns
    """
    if len(headers) != len(layout.col_widths):
        raise ValueError(
            f"{layout.title}: {len(headers)} headers for {len(layout.col_widths)} columns"
        )

    buffer = BytesIO()
    canvas = Canvas(buffer, pagesize=layout.page_size, pageCompression=1 if page_compression else 0)
    canvas.setTitle(layout.title)

    if not rows:
        canvas.setFont(FONT_NAME, 12)
        canvas.drawString(layout.margin, layout.height - layout.margin, NO_DATA_TEXT)
        canvas.showPage()
        canvas.save()
        return buffer.getvalue()

    x_offsets = [layout.margin + sum(layout.col_widths[:i]) for i in range(len(layout.col_widths))]

    for page in plan_pages(len(rows), layout):
        canvas.setFillColor(TEXT_COLOR)
        canvas.setFont(FONT_NAME, layout.title_size)
        canvas.drawString(layout.margin, layout.title_y, layout.title)
        y = layout.header_y

        if page.row_count:
            canvas.setFont(FONT_NAME, layout.font_size)
            for x, header in zip(x_offsets, headers):
                canvas.drawString(x, y, header)
            y -= layout.line_height

            for row in rows[page.row_start:page.row_end]:
                if len(row) != len(x_offsets):
                    raise ValueError(f"{layout.title}: row has {len(row)} cells, expected {len(x_offsets)}")
                for x, value in zip(x_offsets, row):
                    canvas.drawString(x, y, truncate_text(cell_text(value, locale)))
                y -= layout.line_height

        if page.chart:
            _draw_geometry(canvas, _chart_geometry(layout, y, monthly, categories, currency, locale))

        canvas.showPage()

    canvas.save()
    return buffer.getvalue()
