"""Tests for CSV and JSON export."""

import csv
import json

from external_feed.models import NormalizedProperty, NormalizedSearchResult, PropertyImage, ProviderName
from external_feed.storage import export_csv, export_json


def _properties():
    return (
        NormalizedProperty(reference="R1", provider=ProviderName.RESALES_ONLINE, title="Ático en Málaga",
                           price=35_000_000, city="Málaga", images=(PropertyImage("a.jpg", 0),)),
        NormalizedProperty(reference="R2", provider=ProviderName.RESALES_ONLINE, title="Plot"),
    )


def test_export_csv(tmp_path) -> None:
    path = tmp_path / "out" / "results.csv"
    export_csv(_properties(), path)

    with open(path, encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert [r["reference"] for r in rows] == ["R1", "R2"]
    assert rows[0]["price"] == "350000.0"
    assert rows[0]["city"] == "Málaga"
    assert rows[0]["image_url"] == "a.jpg"
    assert rows[1]["price"] == ""


def test_export_json(tmp_path) -> None:
    path = tmp_path / "results.json"
    result = NormalizedSearchResult(properties=_properties(), total_count=2, provider=ProviderName.RESALES_ONLINE)
    export_json(result, path)

    text = path.read_text(encoding="utf-8")
    assert "Ático" in text
    data = json.loads(text)
    assert "exported_at" in data
    assert data["total_count"] == 2
    assert [p["reference"] for p in data["properties"]] == ["R1", "R2"]
