"""Tests for the NDJSON record reader and backend helpers in core.features."""
import json
import logging
import math

import pytest

from core.errors import InvalidParameter
from core.features import (
    DEFAULT_FEATURE_FILES,
    FeatureBackend,
    FeatureRecord,
    feature_files,
    feature_name,
    iter_records,
    parse_elevation,
)
from core.models import Coordinate, FeatureType


def _peak(name, lon, lat, **props):
    return {
        "type": "Feature",
        "id": f"node/{name.lower()}",
        "properties": {"name": name, "natural": "peak", **props},
        "geometry": {"type": "Point", "coordinates": [lon, lat]},
    }


# ---------------------------------------------------------------------------
# parse_elevation / feature_name
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("properties, expected", [
    ({"ele": 8848}, 8848.0),
    ({"ele": "8848"}, 8848.0),
    ({"ele": "8848 m"}, 8848.0),
    ({"elevation": 3776, "ele": "1"}, 3776.0),
    ({"ele": {"$numberDouble": "5895.0"}}, 5895.0),
    ({"ele": "unknown"}, None),
    ({"ele": "NaN"}, None),
    ({}, None),
])
def test_parse_elevation(properties, expected):
    assert parse_elevation(properties) == expected


def test_feature_name_fallbacks():
    assert feature_name({"name": "Fuji", "alt_name": "Fujisan"}) == "Fuji"
    assert feature_name({"alt_name": "Fujisan"}) == "Fujisan"
    assert feature_name({}) == "Unnamed"


# ---------------------------------------------------------------------------
# FeatureRecord
# ---------------------------------------------------------------------------

def test_record_from_geojson():
    record = FeatureRecord.from_geojson(
        _peak("Everest", 86.925, 27.988, ele="8848"), FeatureType.MOUNTAIN_PEAK, "x"
    )
    assert record.id == "node/everest"
    assert record.name == "Everest"
    assert record.elevation == 8848.0
    assert record.geometry.kind == "Point"


def test_record_uses_mongo_id_then_fallback():
    doc = _peak("K2", 76.513, 35.881)
    del doc["id"]
    doc["_id"] = 42
    assert FeatureRecord.from_geojson(doc, FeatureType.MOUNTAIN_PEAK, "x").id == "42"

    del doc["_id"]
    assert FeatureRecord.from_geojson(doc, FeatureType.MOUNTAIN_PEAK, "peak_7").id == "peak_7"


def test_record_to_feature_keeps_vertex_and_source():
    doc = {
        "type": "Feature",
        "properties": {"natural": "coastline"},
        "geometry": {"type": "LineString", "coordinates": [[72.8, 19.0], [72.9, 19.1]]},
    }
    record = FeatureRecord.from_geojson(doc, FeatureType.COASTLINE, "coastline_1")
    feature = record.to_feature(Coordinate(19.1, 72.9), "file_scan")

    assert feature.location == Coordinate(19.1, 72.9)
    assert feature.name == "Unnamed"
    assert feature.source == "file_scan"
    assert feature.geometry_type == "LineString"
    assert feature.generic_type == FeatureType.COASTLINE


# ---------------------------------------------------------------------------
# iter_records
# ---------------------------------------------------------------------------

def test_iter_records_skips_malformed_lines(tmp_path, caplog):
    path = tmp_path / "peaks.ndjson"
    lines = [
        json.dumps(_peak("Fuji", 138.727, 35.363)),
        "",
        "{not json",
        json.dumps({"type": "Feature", "properties": {"name": "No geometry"}}),
        json.dumps(_peak("Offworld", 200.0, 10.0)),
        json.dumps({"properties": {"name": "Hill"}, "geometry": {"type": "Point", "coordinates": [1, 2]}}),
    ]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")

    with caplog.at_level(logging.DEBUG, logger="core.features"):
        records = list(iter_records(path, FeatureType.MOUNTAIN_PEAK))

    assert [r.name for r in records] == ["Fuji", "Hill"]
    assert records[1].id == "mountain_peak_6"
    assert "Skipped 3 malformed lines" in caplog.text


def test_iter_records_empty_file(tmp_path):
    path = tmp_path / "empty.ndjson"
    path.write_text("", encoding="utf-8")
    assert list(iter_records(path, FeatureType.VOLCANO)) == []


def test_feature_files_defaults(tmp_path):
    files = feature_files(tmp_path)
    assert set(files) == set(DEFAULT_FEATURE_FILES)
    assert files[FeatureType.VOLCANO] == tmp_path / "asia_volcanoes.ndjson"


def test_feature_files_override(tmp_path):
    files = feature_files(tmp_path, {FeatureType.MOUNTAIN_PEAK: "alps.ndjson"})
    assert files == {FeatureType.MOUNTAIN_PEAK: tmp_path / "alps.ndjson"}


# ---------------------------------------------------------------------------
# FeatureBackend.check_radius
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("radius", [0, -1, math.nan, math.inf, "75"])
def test_check_radius_rejects(radius):
    with pytest.raises(InvalidParameter):
        FeatureBackend.check_radius(radius)


def test_check_radius_accepts_positive():
    FeatureBackend.check_radius(75)
    FeatureBackend.check_radius(0.5)
