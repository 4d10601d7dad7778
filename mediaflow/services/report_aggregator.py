"""
Report Aggregator

Turns batch records into a flat text report (one labeled block per record,
blank line between blocks) and a tabular document (one row per record, in
input order). Absence records have no text block; in the table their
attribute cells are empty but the row is kept.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, Tuple

from mediaflow.core.config import settings
from mediaflow.core.logger import logger
from mediaflow.schemas.batch_models import BatchRecord


# ============================================================================
# LAYOUTS
# ============================================================================

@dataclass(frozen=True)
class ReportField:
    name: str
    label: str


@dataclass(frozen=True)
class ReportLayout:
    """Which attributes a report shows and how each block is labeled."""
    fields: Tuple[ReportField, ...]
    title: Optional[str] = None
    include_confidence: bool = True
    include_region: bool = False
    object_column: Optional[str] = "Object"

    @property
    def headers(self) -> List[str]:
        headers = [f.label for f in self.fields]
        if self.object_column:
            headers.insert(0, self.object_column)
        return headers


FACE_DETAILS_LAYOUT = ReportLayout(
    title="Details of image",
    fields=(
        ReportField("gender", "Gender"),
        ReportField("age_range", "Age Range"),
        ReportField("beard", "Beard"),
        ReportField("smile", "Smile"),
    ),
    include_region=True,
)

TEXT_DETECTION_LAYOUT = ReportLayout(
    title="Details of image",
    fields=(
        ReportField("text", "Detected Text"),
        ReportField("type", "Type"),
    ),
    include_region=True,
)

VIDEO_FACE_LAYOUT = ReportLayout(
    title="Face detected in",
    fields=(
        ReportField("timestamp", "Timestamp (ms)"),
        ReportField("gender", "Gender"),
        ReportField("age_range", "Age Range"),
        ReportField("beard", "Beard"),
        ReportField("smile", "Smile"),
    ),
    include_region=True,
)

VIDEO_TEXT_LAYOUT = ReportLayout(
    title="Text detected in",
    fields=(
        ReportField("timestamp", "Timestamp (ms)"),
        ReportField("text", "Detected Text"),
        ReportField("type", "Type"),
    ),
    include_region=True,
)

CELEBRITY_LAYOUT = ReportLayout(
    title="Celebrity recognized in",
    fields=(
        ReportField("name", "Celebrity Name"),
        ReportField("celebrity_id", "Celebrity ID"),
        ReportField("known_gender", "Known Gender"),
        ReportField("urls", "Urls"),
    ),
    include_region=True,
)

VOICE_LAYOUT = ReportLayout(
    fields=(
        ReportField("gender", "Gender of Voice"),
        ReportField("voice_id", "Voice ID"),
        ReportField("language_code", "Language Code"),
        ReportField("language_name", "Language Name"),
        ReportField("voice_name", "Voice Name"),
        ReportField("supported_engines", "Supported Engine"),
    ),
    include_confidence=False,
    object_column=None,
)


# ============================================================================
# OUTPUTS
# ============================================================================

@dataclass
class TextReport:
    blocks: List[str] = field(default_factory=list)

    @property
    def content(self) -> str:
        return "".join(f"{block}\n" for block in self.blocks)


@dataclass
class TableReport:
    headers: List[str]
    rows: List[List[str]]
    document: bytes = b""


class ReportRenderer(Protocol):
    """Interface for turning a table into a document."""

    def render_table(self, headers: Sequence[str], rows: Sequence[Sequence[str]]) -> bytes:
        ...


# ============================================================================
# MAIN SERVICE
# ============================================================================

class ReportAggregator:
    """
    Turns batch records into a text report and a table report.

    Absence records get a table row but no text block. Their attribute cells
    are empty. The object cell is the one exception: it still names the
    object. Layouts without an object column give all-empty absence rows.
    """

    def __init__(
        self,
        layout: ReportLayout = FACE_DETAILS_LAYOUT,
        renderer: Optional[ReportRenderer] = None,
        preview_limit: Optional[int] = None
    ):
        if renderer is None:
            from mediaflow.integrations.table_renderer import OpenpyxlTableRenderer
            renderer = OpenpyxlTableRenderer()
        self.layout = layout
        self.renderer = renderer
        self.preview_limit = settings.REPORT_PREVIEW_LIMIT if preview_limit is None else preview_limit

    def aggregate(self, records: Sequence[BatchRecord]) -> Tuple[TextReport, TableReport]:
        """Build both reports; row order follows `records`."""
        text_report = TextReport(blocks=[
            self.render_block(record) for record in records if not record.is_absent
        ])
        headers = self.layout.headers
        rows = [self.table_row(record) for record in records]
        table_report = TableReport(
            headers=headers,
            rows=rows,
            document=self.renderer.render_table(headers, rows)
        )
        logger.info(
            f"Aggregated {len(records)} records: "
            f"{len(text_report.blocks)} text blocks, {len(rows)} table rows"
        )
        return text_report, table_report

    def render_block(self, record: BatchRecord) -> str:
        """Labeled lines for one record with a result."""
        result = record.result
        lines = []
        if self.layout.title:
            lines.append(f"{self.layout.title}: {record.object_ref.name}")

        for report_field in self.layout.fields:
            attribute = result.attributes.get(report_field.name)
            if attribute is None:
                lines.append(f"{report_field.label}: ")
            elif self.layout.include_confidence and attribute.confidence is not None:
                lines.append(
                    f"{report_field.label}: {attribute.value}, "
                    f"with a confidence level of {attribute.confidence}"
                )
            else:
                lines.append(f"{report_field.label}: {attribute.value}")

        if self.layout.include_region and result.region is not None:
            box = result.region
            lines.append(
                f"Bounding Box Details: Width: {box.width}, Height: {box.height}, "
                f"Left: {box.left}, Top: {box.top}"
            )
        return "\n".join(lines) + "\n"

    def table_row(self, record: BatchRecord) -> List[str]:
        row = []
        if self.layout.object_column:
            row.append(record.object_ref.uri)
        for report_field in self.layout.fields:
            value = record.result.value_of(report_field.name) if record.result else None
            row.append(value if value is not None else "")
        return row

    def preview(self, text_report: TextReport, saved_to: Optional[Path] = None, limit: Optional[int] = None) -> str:
        """
        Console view of the text report: the first `limit` blocks, then a
        pointer to the persisted report when anything was left out.
        """
        limit = self.preview_limit if limit is None else limit
        shown = text_report.blocks[:limit]
        output = "\n".join(shown)
        hidden = len(text_report.blocks) - len(shown)
        if hidden > 0:
            location = f" in '{saved_to}'" if saved_to else ""
            output += (
                f"\nShowing the first {len(shown)} of {len(text_report.blocks)} records. "
                f"All records are saved{location}.\n"
            )
        return output

    def persist(
        self,
        text_report: TextReport,
        table_report: TableReport,
        text_path: Path,
        table_path: Path
    ) -> Tuple[Path, Path]:
        """
        Append the text report to `text_path` and write the table document to
        `table_path`. I/O errors propagate; nothing is reported as saved
        unless both writes succeed.
        """
        text_path = Path(text_path)
        table_path = Path(table_path)
        with open(text_path, "a", encoding="utf-8") as f:
            f.write(text_report.content)
        table_path.write_bytes(table_report.document)
        logger.info(f"Reports written to {text_path} and {table_path}")
        return text_path, table_path
