"""
Nexus Compliance - Memo PDF Service

Renders nexus memoranda to PDF with ReportLab.

Layout:
- Firm header and memo metadata
- One block per memo section (text and optional bullet items)
- Conclusion and recommendations
- Seal footer with the content hash once sealed
"""

import io
import logging
from typing import Any, Dict, List, Optional
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import LETTER
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import (
    HRFlowable,
    ListFlowable,
    ListItem,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from app.config import settings
from app.models.memo import NexusMemo

logger = logging.getLogger(__name__)


BRAND_COLOR = colors.HexColor("#1a365d")


class MemoPDFService:
    """Service for generating memo PDFs."""

    def __init__(self, firm_name: Optional[str] = None):
        self.firm_name = firm_name or settings.app_name

    def _styles(self) -> Dict[str, ParagraphStyle]:
        styles = getSampleStyleSheet()
        return {
            "title": ParagraphStyle(
                "MemoTitle",
                parent=styles["Heading1"],
                fontSize=18,
                textColor=BRAND_COLOR,
                spaceAfter=10,
            ),
            "heading": ParagraphStyle(
                "MemoHeading",
                parent=styles["Heading2"],
                fontSize=13,
                textColor=BRAND_COLOR,
                spaceBefore=12,
                spaceAfter=6,
            ),
            "normal": ParagraphStyle(
                "MemoNormal",
                parent=styles["Normal"],
                fontSize=10,
                leading=14,
                spaceAfter=4,
            ),
            "small": ParagraphStyle(
                "MemoSmall",
                parent=styles["Normal"],
                fontSize=8,
                textColor=colors.grey,
            ),
        }

    def _metadata_table(self, memo: NexusMemo, client_name: Optional[str]) -> Table:
        rows = [
            ["Client", client_name or str(memo.client_id)],
            ["Memo type", memo.memo_type],
            ["Status", memo.status],
            ["Prepared", memo.created_at.strftime("%B %d, %Y") if memo.created_at else ""],
        ]
        if memo.supersedes_memo_id:
            rows.append(["Supersedes", str(memo.supersedes_memo_id)])

        table = Table(rows, colWidths=[110, 360])
        table.setStyle(TableStyle([
            ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (-1, -1), 9),
            ("TEXTCOLOR", (0, 0), (0, -1), BRAND_COLOR),
            ("ALIGN", (0, 0), (-1, -1), "LEFT"),
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
        ]))
        return table

    def _section_flowables(self, section: Dict[str, Any], styles: Dict[str, ParagraphStyle]) -> List[Any]:
        elements: List[Any] = [Paragraph(escape(str(section.get("title", ""))), styles["heading"])]
        content = section.get("content")
        if content:
            for paragraph in str(content).split("\n\n"):
                elements.append(Paragraph(escape(paragraph), styles["normal"]))
        items = section.get("items") or []
        if items:
            elements.append(ListFlowable(
                [ListItem(Paragraph(escape(str(item)), styles["normal"])) for item in items],
                bulletType="bullet",
                leftIndent=12,
            ))
        return elements

    def render_memo_pdf(self, memo: NexusMemo, client_name: Optional[str] = None) -> bytes:
        """
        Render a memo to PDF bytes.

        Args:
            memo: Memo to render
            client_name: Display name for the client, falls back to the id

        Returns:
            PDF bytes
        """
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=LETTER,
            rightMargin=20 * mm,
            leftMargin=20 * mm,
            topMargin=20 * mm,
            bottomMargin=20 * mm,
            title=memo.title,
            author=self.firm_name,
        )
        styles = self._styles()

        elements: List[Any] = [
            Paragraph(f"<b>{escape(self.firm_name)}</b>", styles["small"]),
            Paragraph(escape(memo.title), styles["title"]),
            self._metadata_table(memo, client_name),
            Spacer(1, 8),
            HRFlowable(width="100%", color=BRAND_COLOR),
        ]

        for section in memo.sections or []:
            elements.extend(self._section_flowables(section, styles))

        if memo.conclusion:
            elements.append(Paragraph("Conclusion", styles["heading"]))
            elements.append(Paragraph(escape(memo.conclusion), styles["normal"]))

        if memo.recommendations:
            elements.append(Paragraph("Recommendations", styles["heading"]))
            elements.append(ListFlowable(
                [ListItem(Paragraph(escape(str(r)), styles["normal"])) for r in memo.recommendations],
                bulletType="1",
                leftIndent=12,
            ))

        elements.append(Spacer(1, 20))
        elements.append(HRFlowable(width="100%", color=colors.grey))
        if memo.sealed_at and memo.content_hash:
            sealed_on = memo.sealed_at.strftime("%Y-%m-%d %H:%M UTC")
            elements.append(Paragraph(
                f"Sealed {sealed_on}. SHA-256 content hash: {memo.content_hash}",
                styles["small"],
            ))
        else:
            elements.append(Paragraph("DRAFT - not sealed", styles["small"]))

        doc.build(elements)
        pdf_bytes = buffer.getvalue()
        buffer.close()

        logger.debug(f"Rendered memo {memo.id} to PDF ({len(pdf_bytes)} bytes)")
        return pdf_bytes
