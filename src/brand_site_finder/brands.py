from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Union

from .errors import BrandValidationError
from .records import BrandInput

logger = logging.getLogger(__name__)


def _parse_brand(raw: Any) -> BrandInput:
    if not isinstance(raw, dict):
        raise BrandValidationError(f"Brand record is not an object: {raw!r}")
    name = raw.get("brandName") or raw.get("name")
    english = raw.get("brandNameEnglish") or raw.get("englishName")
    category = raw.get("sourceCategory") or raw.get("category") or "unknown"
    return BrandInput(
        name=name.strip() if isinstance(name, str) else name,
        english_name=english.strip() if isinstance(english, str) and english.strip() else None,
        category=str(category),
        is_featured=bool(raw.get("isBest", raw.get("isFeatured", False))),
    )


def parse_brands(records: Any) -> list[BrandInput]:
    """Accept ``{"allBrands": [...]}`` or a bare list; skip invalid records."""
    if isinstance(records, dict):
        records = records.get("allBrands")
    if not isinstance(records, list):
        raise ValueError("Brand list must be a JSON array or an object with 'allBrands'")

    brands = []
    skipped = 0
    for raw in records:
        try:
            brands.append(_parse_brand(raw))
        except BrandValidationError as exc:
            skipped += 1
            logger.warning("Skipping brand record: %s", exc)
    if skipped:
        logger.info("Loaded %d brands, skipped %d invalid records", len(brands), skipped)
    return brands


def load_brands(path: Union[str, Path]) -> list[BrandInput]:
    path = Path(path)
    with path.open(encoding="utf-8") as handle:
        data = json.load(handle)
    brands = parse_brands(data)
    logger.info("Loaded %d brands from %s", len(brands), path)
    return brands
