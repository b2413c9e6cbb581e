"""
Export module — generates PDF, Word (.docx) and CSV reports from an
AnalysisResult without any external API or AI.
"""

import io
import csv
from datetime import datetime
from xml.sax.saxutils import escape

from analyzer import AnalysisResult, CATEGORY_DEFINITIONS


# ─────────────────────────────────────────────────────────────────────────────
# Shared helpers
# ─────────────────────────────────────────────────────────────────────────────

SEVERITY_COLOR = {
    "low":      ( 34, 197,  94),   # green
    "medium":   (245, 158,  11),   # amber
    "high":     (249, 115,  22),   # orange
    "critical": (239,  68,  68),   # red
}

DARK    = ( 13,  13,  13)
GREY    = (100, 100, 100)
LGREY   = (220, 220, 220)

DISCLAIMER = "This report is for informational purposes only and does not constitute legal advice."

def _now() -> str:
    return datetime.now().strftime("%B %d, %Y at %H:%M")

def _icon(finding) -> str:
    return CATEGORY_DEFINITIONS[finding.category].icon

def _headline(result: AnalysisResult) -> str:
    return f"{result.overall_severity.value.title()} Risk  ({result.score}/100)"


# ─────────────────────────────────────────────────────────────────────────────
# PDF report  (ReportLab)
# ─────────────────────────────────────────────────────────────────────────────

def export_pdf(result: AnalysisResult) -> bytes:
    from reportlab.lib.pagesizes import A4
    from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
    from reportlab.lib.units import mm
    from reportlab.lib import colors
    from reportlab.platypus import (
        SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle, HRFlowable
    )

    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf, pagesize=A4,
        leftMargin=20*mm, rightMargin=20*mm,
        topMargin=18*mm, bottomMargin=18*mm,
        title="Agreement Risk Report"
    )
    cw = A4[0] - 40*mm

    def rgb(t):  return colors.Color(*[v/255 for v in t])

    sc     = rgb(SEVERITY_COLOR[result.overall_severity.value])
    grey_c = rgb(GREY)
    base   = getSampleStyleSheet()

    def sty(name, **kw):
        return ParagraphStyle(name, parent=base["Normal"], **kw)

    s_title = sty("title", fontSize=20, leading=26, fontName="Helvetica-Bold", spaceAfter=4)
    s_small = sty("small", fontSize=8,  leading=12, textColor=grey_c, spaceAfter=8)
    s_h2    = sty("h2",    fontSize=13, leading=18, fontName="Helvetica-Bold", spaceBefore=12, spaceAfter=6)
    s_body  = sty("body",  fontSize=9,  leading=14, spaceAfter=4)
    s_ev    = sty("ev",    fontSize=8,  leading=12, textColor=grey_c, leftIndent=12, spaceAfter=6)
    s_risk  = sty("risk",  fontSize=14, leading=18, fontName="Helvetica-Bold", textColor=sc)

    story = [
        Paragraph("Agreement Risk Report", s_title),
        Paragraph(f"Generated {_now()}", s_small),
        HRFlowable(width="100%", thickness=2, color=sc, spaceAfter=10),
        Paragraph(_headline(result), s_risk),
        Paragraph(escape(result.summary), s_body),
        Paragraph(escape(result.comparison.message), s_body),
    ]

    # ── Findings table ──────────────────────────────────────────────────────
    story.append(Paragraph("Risks Found", s_h2))
    if result.risks:
        rows = [["Risk", "Severity", "What it means"]]
        for r in result.risks:
            rows.append([
                Paragraph(f"<b>{escape(r.title)}</b>", s_body),
                Paragraph(r.severity.value.upper(), s_body),
                Paragraph(escape(r.summary), s_body),
            ])
        tbl = Table(rows, colWidths=[cw*0.28, cw*0.14, cw*0.58])
        tbl.setStyle(TableStyle([
            ("BACKGROUND",    (0,0), (-1,0),  rgb(DARK)),
            ("TEXTCOLOR",     (0,0), (-1,0),  colors.white),
            ("FONTNAME",      (0,0), (-1,0),  "Helvetica-Bold"),
            ("FONTSIZE",      (0,0), (-1,-1), 8),
            ("GRID",          (0,0), (-1,-1), 0.3, rgb(LGREY)),
            ("VALIGN",        (0,0), (-1,-1), "TOP"),
            ("TOPPADDING",    (0,0), (-1,-1), 4),
            ("BOTTOMPADDING", (0,0), (-1,-1), 4),
        ]))
        story.append(tbl)
        for r in result.risks:
            if r.original_text:
                story.append(Paragraph(f'<i>"{escape(r.original_text[:300])}"</i>', s_ev))
    else:
        story.append(Paragraph("No risks detected.", s_body))

    # ── Warnings & red flags ────────────────────────────────────────────────
    if result.combination_warnings:
        story.append(Paragraph("Dangerous Combinations", s_h2))
        for w in result.combination_warnings:
            story.append(Paragraph(f"• {escape(w)}", s_body))

    story.append(Paragraph("Red Flags", s_h2))
    if result.red_flags:
        for rf in result.red_flags:
            story.append(Paragraph(f'• "{escape(rf)}"', s_body))
    else:
        story.append(Paragraph("No major red flags detected.", s_body))

    story.append(Spacer(1, 12))
    story.append(HRFlowable(width="100%", thickness=0.5, color=rgb(LGREY)))
    story.append(Paragraph(DISCLAIMER, s_small))

    doc.build(story)
    return buf.getvalue()


# ─────────────────────────────────────────────────────────────────────────────
# Word (.docx) export
# ─────────────────────────────────────────────────────────────────────────────

def export_word(result: AnalysisResult) -> bytes:
    from docx import Document
    from docx.shared import Pt, RGBColor, Inches

    doc = Document()

    def add_para(text="", bold=False, italic=False, color=None, size=10, indent=0):
        p = doc.add_paragraph()
        if indent:
            p.paragraph_format.left_indent = Inches(indent)
        run = p.add_run(text)
        run.bold, run.italic = bold, italic
        run.font.size = Pt(size)
        if color: run.font.color.rgb = RGBColor(*color)
        return p

    doc.add_heading("Agreement Risk Report", 0)
    add_para(f"Generated: {_now()}", color=GREY, size=9)

    add_para(_headline(result), bold=True, size=14,
             color=SEVERITY_COLOR[result.overall_severity.value])
    add_para(result.summary, size=9)
    add_para(result.comparison.message, size=9)

    doc.add_heading("Risks Found", 1)
    for r in result.risks:
        p = doc.add_paragraph(style="List Bullet")
        run = p.add_run(f"{_icon(r)}  {r.title}  [{r.severity.value.upper()}]")
        run.bold = True
        run.font.color.rgb = RGBColor(*SEVERITY_COLOR[r.severity.value])
        add_para(r.summary, size=9, indent=0.25)
        if r.original_text:
            add_para(f'"{r.original_text[:300]}"', italic=True, color=GREY, size=8, indent=0.25)
    if not result.risks:
        add_para("No risks detected.", color=GREY, size=9)

    if result.combination_warnings:
        doc.add_heading("Dangerous Combinations", 1)
        for w in result.combination_warnings:
            doc.add_paragraph(w, style="List Bullet")

    doc.add_heading("Red Flags", 1)
    for rf in result.red_flags:
        doc.add_paragraph(f'🚩  "{rf}"', style="List Bullet")
    if not result.red_flags:
        add_para("No major red flags detected.", color=GREY, size=9)

    add_para(DISCLAIMER, italic=True, color=GREY, size=8)

    buf = io.BytesIO()
    doc.save(buf)
    return buf.getvalue()


# ─────────────────────────────────────────────────────────────────────────────
# CSV export
# ─────────────────────────────────────────────────────────────────────────────

def export_csv(result: AnalysisResult) -> bytes:
    buf = io.StringIO()
    w = csv.writer(buf)

    w.writerow(["SECTION", "FIELD", "VALUE"])
    w.writerow(["Summary", "Overall Severity", result.overall_severity.value])
    w.writerow(["Summary", "Risk Score",       result.score])
    w.writerow(["Summary", "Comparison",       result.comparison.comparison])
    w.writerow(["Summary", "Percentile",       result.comparison.percentile])
    w.writerow(["Summary", "Summary",          result.summary])
    w.writerow([])

    w.writerow(["RISKS"])
    w.writerow(["Category", "Severity", "Title", "Summary", "Original Text"])
    for r in result.risks:
        w.writerow([r.category.value, r.severity.value, r.title, r.summary, r.original_text])
    w.writerow([])

    w.writerow(["COMBINATION WARNINGS"])
    for warning in result.combination_warnings:
        w.writerow([warning])
    w.writerow([])

    w.writerow(["RED FLAGS"])
    for rf in result.red_flags:
        w.writerow([rf])

    return buf.getvalue().encode("utf-8-sig")  # BOM for Excel compatibility
