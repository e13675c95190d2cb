"""
Report Export

Writes the per-provider CSV and TXT transcript and the opportunities CSV.

File names:
    <brand-slug>-<provider>-<YYYYmmddHHMMSS>.csv / .txt
    <brand-slug>-opportunities-<YYYYmmddHHMMSS>.csv
"""

import csv
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Sequence, Tuple

from visibility.context.brands import slug_lower
from visibility.context.run import RunContext
from visibility.scoring.helpers import KEYWORD_PERFORMANCE

logger = logging.getLogger(__name__)

METRIC_COLUMNS = ("Mentions", "Rank", "SOV", "Sentiment", "Links")

OPPORTUNITY_COLUMNS = [
    ("prompt", "Prompt"),
    ("opportunity_type", "Opportunity Type"),
    ("content_update_type", "Content Update Type"),
    ("suggested_brand_url", "Suggested existing URL for optimization"),
    ("example_competitor_url", "Example URL from competitor for net new content"),
    ("keyword", "Keyword"),
    ("msv", "MSV"),
    ("provider", "Provider"),
    ("run_date", "Run Date"),
]


def report_header(brands: Sequence[str]) -> List[str]:
    header = ["Keyword", "Question", "MSV"]
    for brand in brands:
        header.extend(f"{brand} {column}" for column in METRIC_COLUMNS)
    return header


def _format_sov(sov: float) -> str:
    return f"{sov:.1f}%"


def report_rows(report) -> List[List]:
    """CSV rows of a ProviderReport: every question, then the keyword aggregate."""
    rows = []
    for kw in report.keywords:
        for q in kw.questions:
            by_brand = {m.brand: m for m in q.metrics}
            row = [kw.keyword, q.question, kw.msv]
            for brand in report.brands:
                m = by_brand[brand]
                row.extend([m.mentions, m.rank, _format_sov(m.sov), q.sentiment.get(brand, 0), m.links])
            rows.append(row)

        by_brand = {p.brand: p for p in kw.performance}
        row = [kw.keyword, KEYWORD_PERFORMANCE, kw.msv]
        for brand in report.brands:
            p = by_brand[brand]
            row.extend([p.mentions, f"{p.rank:.1f}", _format_sov(p.sov), p.sentiment, ""])
        rows.append(row)
    return rows


def transcript_lines(report) -> List[str]:
    lines = []
    for kw in report.keywords:
        lines.extend([f"[{kw.keyword}]", f"MSV: {kw.msv}"])
        for q in kw.questions:
            lines.extend([f"[{q.question}]", q.answer, ""])
        lines.append("-" * 50)
    return lines


def write_provider_report(report, context: RunContext, output_dir: Path) -> Tuple[Path, Path]:
    """Write <slug>-<provider>-<ts>.csv and .txt; returns both paths."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    prefix = f"{slug_lower(context.brand)}-{report.provider}-{context.run_id.file_stamp}"

    csv_path = output_dir / f"{prefix}.csv"
    with open(csv_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(report_header(report.brands))
        writer.writerows(report_rows(report))

    txt_path = output_dir / f"{prefix}.txt"
    txt_path.write_text("\n".join(transcript_lines(report)), encoding="utf-8")

    logger.info(f"Outputs for {report.provider} written: {csv_path}, {txt_path}")
    return csv_path, txt_path


def opportunity_rows(records: Sequence) -> List[Dict[str, str]]:
    rows = []
    for record in records:
        row = {}
        for field, title in OPPORTUNITY_COLUMNS:
            value = getattr(record, field)
            row[title] = "" if value is None else value
        rows.append(row)
    return rows


def write_opportunities_csv(records: Sequence, brand: str, output_dir: Path) -> Path:
    """Write <slug>-opportunities-<ts>.csv for mined records."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    path = output_dir / f"{slug_lower(brand)}-opportunities-{stamp}.csv"

    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=[title for _, title in OPPORTUNITY_COLUMNS])
        writer.writeheader()
        writer.writerows(opportunity_rows(records))

    logger.info(f"Wrote {len(records)} opportunities to {path}")
    return path
