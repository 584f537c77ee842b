from __future__ import annotations

import csv
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Union

from .context import RunState

if TYPE_CHECKING:
    from .scheduler import RunReport

logger = logging.getLogger(__name__)

CSV_COLUMNS = [
    "Brand Name",
    "English Name",
    "Category",
    "Is Featured",
    "Primary Website",
    "All Websites",
    "Search Method",
    "Search Queries Used",
    "Domain Guessed",
    "Status",
]


def export_report(report: RunReport, state: RunState, export_dir: Union[str, Path]) -> dict[str, str]:
    """Write the JSON report and the CSV of found brands; returns their paths."""
    export_dir = Path(export_dir)
    export_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    json_path = export_dir / f"brand_sites_report_{timestamp}.json"
    csv_path = export_dir / f"brand_sites_{timestamp}.csv"

    with state.lock:
        success = [r.to_dict() for r in state.success_results]
        failed = [r.to_dict() for r in state.failed_results]

    document = {
        "metadata": {
            "generated_at": datetime.now(timezone.utc).isoformat(),
            **report.to_dict(),
        },
        "success_results": success,
        "failed_results": failed,
    }
    document["metadata"].pop("exports", None)
    with json_path.open("w", encoding="utf-8") as handle:
        json.dump(document, handle, ensure_ascii=False, indent=2)

    # utf-8-sig so spreadsheet tools detect the Korean text
    with csv_path.open("w", newline="", encoding="utf-8-sig") as handle:
        writer = csv.writer(handle)
        writer.writerow(CSV_COLUMNS)
        for row in success:
            writer.writerow([
                row["brand_name"],
                row["english_name"] or "",
                row["category"],
                "Y" if row["is_featured"] else "N",
                row["primary_website"] or "",
                "; ".join(row["websites"]),
                row["search_method"],
                "; ".join(row["search_queries_tried"]),
                "Y" if row["guessed_domain"] else "N",
                row["status"],
            ])

    logger.info("Exported %d found brands to %s and %s", len(success), json_path, csv_path)
    return {"json": str(json_path), "csv": str(csv_path)}
