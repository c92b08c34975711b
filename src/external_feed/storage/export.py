"""Export normalized search results to CSV and JSON."""

from __future__ import annotations

import csv
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from ..models import NormalizedProperty, NormalizedSearchResult


def export_csv(properties: Iterable[NormalizedProperty], path: Path | str) -> None:
    """One row per property; price in major currency units."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fieldnames = [
        "reference",
        "title",
        "property_type",
        "listing_type",
        "status",
        "price",
        "currency",
        "bedrooms",
        "bathrooms",
        "built_area",
        "city",
        "region",
        "image_url",
    ]

    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        for p in properties:
            writer.writerow({
                "reference": p.reference,
                "title": p.title,
                "property_type": p.property_type.value,
                "listing_type": p.listing_type.value,
                "status": p.status.value,
                "price": p.price / 100 if p.has_price else "",
                "currency": p.currency,
                "bedrooms": p.bedrooms,
                "bathrooms": p.bathrooms,
                "built_area": p.built_area,
                "city": p.city or "",
                "region": p.region or "",
                "image_url": p.primary_image_url or "",
            })


def export_json(result: NormalizedSearchResult, path: Path | str) -> None:
    """Export the full search result to JSON."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    data = {
        "exported_at": datetime.now(timezone.utc).isoformat(),
        **result.to_dict(),
    }

    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
