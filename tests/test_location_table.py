"""Tests for building, writing and loading the administrative code table."""

import json
import threading
import time

import pytest

from idcard_info.errors import DataError
from idcard_info.location_table import (
    AdministrativeCodeTable,
    LocationTableService,
    build_code_table,
    build_location_table,
    load_location_table,
)


# (raw dataset, mapping name, key, expected name)
BUILD_CASES = [
    ({"1": ["北京|1100"]}, "provinces", "11", "北京"),
    ({"1": ["四川省|510000"]}, "provinces", "51", "四川省"),
    # xxxx00 city codes are stored under their 4 digit prefix
    ({"1_3": ["成都市|510100"]}, "cities", "5101", "成都市"),
    # county-level cities keep the full code
    ({"1_2": ["屯昌县|460022"]}, "cities", "460022", "屯昌县"),
    ({"1_3_1": ["长寿县|510232"]}, "counties", "510232", "长寿县"),
    ({"10_12_3_4": ["某某区|999901"]}, "counties", "999901", "某某区"),
    # dotted path keys are classified like underscored ones
    ({"1.3": ["成都市|510100"]}, "cities", "5101", "成都市"),
    ({"1.3.1": ["长寿县|510232"]}, "counties", "510232", "长寿县"),
]


@pytest.mark.parametrize("raw, mapping, key, expected", BUILD_CASES)
def test_build_code_table_levels(raw, mapping, key, expected):
    table = build_code_table(raw)
    assert getattr(table, mapping)[key] == expected


def test_build_code_table_from_sample(sample_table):
    assert sample_table.provinces == {"11": "北京市", "31": "上海市", "46": "海南省", "51": "四川省"}
    assert sample_table.cities["1101"] == "北京市"
    assert sample_table.cities["5102"] == "重庆市"
    assert "510200" not in sample_table.cities
    assert sample_table.counties["110105"] == "朝阳区"
    assert len(sample_table.counties) == 5


def test_build_code_table_ignores_unknown_keys():
    table = build_code_table({"meta": ["x|y"], "12": ["北京|1100"], "1": ["北京|1100"]})
    assert dict(table.provinces) == {"11": "北京"}
    assert not table.cities
    assert not table.counties


def test_table_is_read_only(sample_table):
    with pytest.raises(TypeError):
        sample_table.provinces["99"] = "nowhere"
    with pytest.raises(AttributeError):
        sample_table.provinces = {}


def test_empty_table():
    table = AdministrativeCodeTable.empty()
    assert table.is_empty
    assert table.provinces.get("11") is None


@pytest.mark.parametrize(
    "raw",
    [
        ["北京|1100"],
        {"1": "北京|1100"},
        {"1": ["北京1100"]},
        {"1": ["北京|"]},
        {"1": ["北京|1"]},
        {"1_0": [42]},
    ],
)
def test_build_code_table_rejects_malformed_data(raw):
    with pytest.raises(DataError):
        build_code_table(raw)


def test_build_then_load_round_trip(tmp_path, sample_database):
    database = tmp_path / "database.json"
    location = tmp_path / "location.json"
    database.write_text(json.dumps(sample_database, ensure_ascii=False), encoding="utf-8")

    built = build_location_table(database, location)
    loaded = load_location_table(location)

    assert loaded == built
    assert loaded.provinces["51"] == "四川省"
    assert loaded.cities["460022"] == "屯昌县"

    document = json.loads(location.read_text(encoding="utf-8"))
    assert set(document) == {"provinces", "cities", "countries"}
    assert document["countries"]["510104"] == "锦江区"
    # names are written as UTF-8, not \u escapes
    assert "四川省" in location.read_text(encoding="utf-8")


def test_default_paths_resolve_from_working_directory(tmp_path, monkeypatch, sample_database, capsys):
    (tmp_path / "database.json").write_text(json.dumps(sample_database), encoding="utf-8")
    monkeypatch.chdir(tmp_path)

    table = build_location_table()

    assert (tmp_path / "location.json").exists()
    assert load_location_table() == table
    assert "Built location table with 4 provinces" in capsys.readouterr().out


def test_build_location_table_missing_source(tmp_path):
    with pytest.raises(DataError, match="failed to read dataset"):
        build_location_table(tmp_path / "missing.json", tmp_path / "location.json")


def test_build_location_table_invalid_json(tmp_path):
    database = tmp_path / "database.json"
    database.write_text("{not json", encoding="utf-8")
    with pytest.raises(DataError, match="failed to parse dataset"):
        build_location_table(database, tmp_path / "location.json")


def test_build_location_table_unwritable_destination(tmp_path, sample_database):
    database = tmp_path / "database.json"
    database.write_text(json.dumps(sample_database), encoding="utf-8")
    with pytest.raises(DataError, match="failed to write location table"):
        build_location_table(database, tmp_path / "no_such_dir" / "location.json")


def test_load_location_table_missing_fields_are_empty(tmp_path):
    location = tmp_path / "location.json"
    location.write_text(json.dumps({"provinces": {"11": "北京市"}}), encoding="utf-8")

    table = load_location_table(location)

    assert table.provinces["11"] == "北京市"
    assert not table.cities
    assert not table.counties


@pytest.mark.parametrize(
    "document",
    [
        [],
        {"provinces": ["11"]},
        {"cities": {"1101": 1101}},
    ],
)
def test_load_location_table_rejects_malformed_document(tmp_path, document):
    location = tmp_path / "location.json"
    location.write_text(json.dumps(document), encoding="utf-8")
    with pytest.raises(DataError):
        load_location_table(location)


def test_load_location_table_missing_file(tmp_path):
    with pytest.raises(DataError):
        load_location_table(tmp_path / "location.json")


# ════════════════════════════════════════════════════════════════════════════════
# LocationTableService
# ════════════════════════════════════════════════════════════════════════════════


def test_service_loads_once_under_concurrency(sample_table):
    calls = []

    def slow_loader(path):
        calls.append(path)
        time.sleep(0.05)
        return sample_table

    service = LocationTableService("location.json", loader=slow_loader)
    results = []

    def worker():
        results.append(service.get_table())

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert calls == ["location.json"]
    assert len(results) == 8
    assert all(result is sample_table for result in results)
    assert service.is_initialized
    assert service.load_error is None


def test_service_failed_load_is_logged_and_not_retried(tmp_path, caplog):
    calls = []

    def failing_loader(path):
        calls.append(path)
        raise DataError("broken table")

    service = LocationTableService(tmp_path / "location.json", loader=failing_loader)

    first = service.get_table()
    second = service.get_table()

    assert first.is_empty
    assert second is first
    assert len(calls) == 1
    assert isinstance(service.load_error, DataError)
    assert "Failed to load location table: broken table" in caplog.text


def test_service_missing_artifact_gives_empty_table(tmp_path):
    service = LocationTableService(tmp_path / "missing.json")
    assert service.get_table().is_empty
    assert service.load_error is not None


def test_service_from_table(sample_table):
    service = LocationTableService.from_table(sample_table)
    assert service.is_initialized
    assert service.get_table() is sample_table


# ════════════════════════════════════════════════════════════════════════════════
# Undecodable files and unusual keys
# ════════════════════════════════════════════════════════════════════════════════


def test_build_location_table_undecodable_source(tmp_path):
    database = tmp_path / "database.json"
    database.write_bytes(b'{"1": ["\xff\xfe|110000"]}')
    with pytest.raises(DataError, match="failed to parse dataset"):
        build_location_table(database, tmp_path / "location.json")
    assert not (tmp_path / "location.json").exists()


def test_load_location_table_undecodable_artifact(tmp_path):
    location = tmp_path / "location.json"
    location.write_bytes(b'{"provinces": {"51": "\xff\xfe"}}')
    with pytest.raises(DataError, match="failed to parse location table"):
        load_location_table(location)


def test_service_undecodable_artifact_gives_empty_table(tmp_path, caplog):
    location = tmp_path / "location.json"
    location.write_bytes(b'{"provinces": {"51": "\xff\xfe"}}')
    service = LocationTableService(location)

    assert service.get_table().is_empty
    assert isinstance(service.load_error, DataError)
    assert "Failed to load location table" in caplog.text


@pytest.mark.parametrize("key", ["١", "١_٠", "1\n", "1_0\n"])
def test_build_code_table_ignores_non_ascii_digit_keys(key):
    table = build_code_table({key: ["北京|110000"]})
    assert table.is_empty


def test_build_code_table_city_code_with_trailing_newline_keeps_full_code():
    table = build_code_table({"1_0": ["成都市|510100\n"]})
    assert dict(table.cities) == {"510100\n": "成都市"}


def test_build_code_table_rejects_non_string_keys():
    with pytest.raises(DataError, match="keys must be strings"):
        build_code_table({1: ["北京|1100"]})
