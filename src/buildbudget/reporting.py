"""Formatting, tabular summaries and PDF export for budget results."""
from __future__ import annotations

import textwrap
from pathlib import Path
from typing import List, Optional

import pandas as pd
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas

from .models import BudgetResult, ProjectParams

FRAME_COLUMNS = ["CATEGORY_ID", "CATEGORY", "ITEM_ID", "ITEM", "AMOUNT", "INCLUDED"]


def format_currency(value: float) -> str:
    """Whole-dollar USD formatting used throughout the interface."""
    rounded = round(float(value))
    sign = "-" if rounded < 0 else ""
    return f"{sign}${abs(rounded):,.0f}"


def budget_frame(result: BudgetResult) -> pd.DataFrame:
    rows = [
        {
            "CATEGORY_ID": category.id,
            "CATEGORY": category.name,
            "ITEM_ID": item.id,
            "ITEM": item.name,
            "AMOUNT": float(item.amount),
            "INCLUDED": bool(item.included),
        }
        for category in result.categories
        for item in category.items
    ]
    return pd.DataFrame(rows, columns=FRAME_COLUMNS)


def make_summary_text(result: BudgetResult, top: int = 5) -> str:
    frame = budget_frame(result)
    mask = frame["INCLUDED"].astype(bool)
    included = frame.loc[mask]
    total = float(included["AMOUNT"].sum())
    excluded = int((~mask).sum())
    drivers = included.sort_values("AMOUNT", ascending=False).head(top)[["CATEGORY", "ITEM", "AMOUNT"]]
    lines = [
        f"Project budget (included items): {format_currency(total)}.",
        f"Service reported total: {format_currency(result.total_cost)}.",
    ]
    if excluded:
        lines.append(f"{excluded} line item(s) excluded from the total.")
    if not drivers.empty:
        drivers = drivers.assign(AMOUNT=drivers["AMOUNT"].map(format_currency))
        lines.append(f"Top cost drivers:\n{drivers.to_string(index=False)}")
    lines.append(f"Estimated timeline: {result.timeline_weeks:g} weeks.")
    return "\n".join(lines) + "\n"


def write_budget_pdf(result: BudgetResult, path: Path, params: Optional[ProjectParams] = None) -> Path:
    """Render a printable budget with reportlab and return the written path."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    pdf = canvas.Canvas(str(path), pagesize=letter)
    width, height = letter
    margin = 54
    y = height - margin

    def line(text: str, *, size: int = 10, bold: bool = False, indent: int = 0) -> None:
        nonlocal y
        if y < margin:
            pdf.showPage()
            y = height - margin
        pdf.setFont("Helvetica-Bold" if bold else "Helvetica", size)
        pdf.drawString(margin + indent, y, text)
        y -= size + 6

    def amount(text: str, value: float, *, bold: bool = False, indent: int = 0) -> None:
        line(text, bold=bold, indent=indent)
        pdf.drawRightString(width - margin, y + 16, format_currency(value))

    title = params.name if params is not None else "Project Budget"
    line(title, size=16, bold=True)
    if params is not None:
        line(f"{params.location} - {params.scenario.value}")
    amount("Total Estimated Project Budget", result.included_total(), bold=True)
    line(
        f"Building $/SF: ${result.shell_cost_per_sqft:,.2f}   Site $/SF: ${result.site_cost_per_sqft:,.2f}"
        f"   Timeline: {result.timeline_weeks:g} weeks"
    )
    y -= 6
    for category in result.categories:
        amount(category.name, category.included_total(), bold=True)
        for item in category.items:
            marker = "[x]" if item.included else "[ ]"
            amount(f"{marker} {item.name}", item.amount, indent=12)
        y -= 4

    sections: List[tuple[str, List[str]]] = [
        ("Expert Advice", [result.expert_advice]),
        ("Risk Factors", [f"- {risk}" for risk in result.risk_factors]),
        (
            "Recommended Scopes",
            [f"- {s.name} ({s.suggested_cost_range}): {s.importance}" for s in result.recommended_scopes],
        ),
    ]
    if result.needed_files:
        sections.append(("Helpful Documents", [f"- {name}" for name in result.needed_files]))
    for heading, paragraphs in sections:
        if not any(p.strip() for p in paragraphs):
            continue
        y -= 4
        line(heading, size=12, bold=True)
        for paragraph in paragraphs:
            for wrapped in textwrap.wrap(paragraph, 95) or [""]:
                line(wrapped)

    pdf.save()
    return path


__all__ = ["format_currency", "budget_frame", "make_summary_text", "write_budget_pdf"]
