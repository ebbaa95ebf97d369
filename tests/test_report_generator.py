# tests/test_report_generator.py
import asyncio
import csv
import io
import json
from datetime import datetime, timezone

import httpx
import pytest

from conftest import fake_signer, ticking_clock
from vehicle_reports.core.errors import ConfigurationError, UpstreamAuthError, ValidationError
from vehicle_reports.services.report_generator import ReportGenerator, derive_rows, report_filename
from vehicle_reports.services.token_exchange import TokenExchangeClient
from vehicle_reports.storage.config_store import ConfigStore
from vehicle_reports.storage.report_store import ReportStore


@pytest.fixture
def stores(settings):
    config = ConfigStore(settings.config_path, settings.default_redirect_uri)
    config.save("0xabc", "k1")
    return config, ReportStore(settings.data_dir)


def _generate(dimo, settings, stores, ids, start="2024-01-01", end="2024-01-31"):
    config_store, report_store = stores

    async def go():
        async with httpx.AsyncClient(transport=dimo.transport()) as http:
            exchange = TokenExchangeClient(http, settings, fake_signer)
            gen = ReportGenerator(http, settings, exchange, config_store, report_store, clock=ticking_clock())
            return await gen.generate(ids, start, end)
    return asyncio.run(go())


def _csv(result):
    return list(csv.reader(io.StringIO(result.path.read_text())))


def test_distance_is_difference_without_clamping():
    rows = derive_rows("7", "VIN7", [
        {"powertrainTransmissionTravelledDistance": v, "timestamp": f"t{i}"}
        for i, v in enumerate([100, 150, 140, 200])
    ])
    assert [r.travelled_distance for r in rows] == [0, 50, -10, 60]
    assert [r.odometer_reading for r in rows] == [100, 150, 140, 200]
    assert [r.timestamp for r in rows] == ["t0", "t1", "t2", "t3"]


def test_absent_readings_default_to_zero():
    rows = derive_rows("7", None, [
        {"powertrainTransmissionTravelledDistance": 100.5, "timestamp": "a"},
        {"powertrainTransmissionTravelledDistance": None, "timestamp": "b"},
        {"powertrainTransmissionTravelledDistance": 120.5, "timestamp": "c"},
    ])
    assert [r.odometer_reading for r in rows] == [100.5, 0, 120.5]
    assert [r.travelled_distance for r in rows] == [0, -100.5, 120.5]
    assert {r.vin for r in rows} == {"N/A"}


@pytest.mark.parametrize("signals", [None, [], "oops"])
def test_no_samples_yields_single_na_row(signals):
    (row,) = derive_rows("9", "VIN9", signals)
    assert (row.token_id, row.vin, row.timestamp, row.odometer_reading, row.travelled_distance) == \
        ("9", "VIN9", "N/A", "N/A", 0)


def test_report_filename_replaces_colons_and_dots():
    now = datetime(2024, 2, 1, 12, 30, 45, 123456, tzinfo=timezone.utc)
    assert report_filename(now) == "vehicle-report-2024-02-01T12-30-45-123Z.csv"


def test_generate_writes_csv(dimo, settings, stores):
    dimo.set_readings(42, [100, 150, 140, 200], vin="VIN42")
    result = _generate(dimo, settings, stores, ["42"])

    assert result.record_count == 4
    assert result.filename == "vehicle-report-2024-02-01T12-30-45-123Z.csv"
    rows = _csv(result)
    assert rows[0] == ["Token ID", "VIN", "Timestamp", "Odometer Reading", "Travelled Distance"]
    assert rows[1:] == [
        ["42", "VIN42", "2024-01-01T00:00:00Z", "100", "0"],
        ["42", "VIN42", "2024-01-02T00:00:00Z", "150", "50"],
        ["42", "VIN42", "2024-01-03T00:00:00Z", "140", "-10"],
        ["42", "VIN42", "2024-01-04T00:00:00Z", "200", "60"],
    ]


def test_telemetry_query_bounds_and_privileges(dimo, settings, stores):
    dimo.set_readings(42, [1])
    _generate(dimo, settings, stores, ["42"], "2024-01-01", "2024-01-31")

    exchange = next(r for r in dimo.requests if r.url.host == "token-exchange-api.dimo.zone")
    assert json.loads(exchange.content)["privileges"] == [1]
    telemetry = next(r for r in dimo.requests if r.url.host == "telemetry-api.dimo.zone")
    sent = json.loads(telemetry.content)
    assert sent["variables"] == {"tokenId": 42, "from": "2024-01-01T00:00:00Z", "to": "2024-01-31T23:59:59Z"}
    assert 'interval: "24h"' in sent["query"]
    assert "powertrainTransmissionTravelledDistance(agg: MAX)" in sent["query"]


def test_failing_vehicles_become_sentinel_rows(dimo, settings, stores):
    dimo.set_readings(1, [10, 20])
    dimo.failing_exchange.add(2)
    dimo.set_readings(3, [5])
    dimo.failing_telemetry.add(4)
    dimo.set_readings(5, [])

    result = _generate(dimo, settings, stores, ["1", "2", "3", "4", "5"])

    sentinels = [r for r in result.rows if r.vin == "ERROR"]
    assert [r.token_id for r in sentinels] == ["2", "4"]
    for r in sentinels:
        assert (r.timestamp, r.odometer_reading, r.travelled_distance) == ("ERROR", "ERROR", 0)
    assert [r.token_id for r in result.rows] == ["1", "1", "2", "3", "4", "5"]
    assert _csv(result)[3] == ["2", "ERROR", "ERROR", "ERROR", "0"]


def test_invalid_vehicle_id_is_isolated(dimo, settings, stores):
    dimo.set_readings(1, [10])
    result = _generate(dimo, settings, stores, ["abc", "1"])
    assert [(r.token_id, r.vin) for r in result.rows] == [("abc", "ERROR"), ("1", "5YJ3E1EA7KF000001")]


def test_all_vehicles_failing_still_completes(dimo, settings, stores):
    dimo.failing_telemetry.update({1, 2, 3})
    result = _generate(dimo, settings, stores, ["1", "2", "3"])
    assert result.record_count == 3
    assert all(r.vin == "ERROR" for r in result.rows)
    assert result.path.exists()


@pytest.mark.parametrize("ids, start, end", [
    ([], "2024-01-01", "2024-01-31"),
    (None, "2024-01-01", "2024-01-31"),
    (["1"], None, "2024-01-31"),
    (["1"], "2024-01-01", ""),
    (["1"], "01/01/2024", "2024-01-31"),
    (["1"], "20240101", "20240131"),
    (["1"], "2024-W01-1", "2024-01-31"),
    (["1"], "2024-02-01", "2024-01-31"),
])
def test_invalid_inputs_abort_before_any_work(dimo, settings, stores, ids, start, end):
    with pytest.raises(ValidationError):
        _generate(dimo, settings, stores, ids, start, end)
    assert dimo.requests == []
    assert stores[1].list() == []


def test_missing_configuration(dimo, settings, stores):
    stores[0].delete()
    with pytest.raises(ConfigurationError):
        _generate(dimo, settings, stores, ["1"])
    assert dimo.requests == []


def test_developer_token_failure_aborts(dimo, settings, stores):
    dimo.reject_credentials = True
    with pytest.raises(UpstreamAuthError):
        _generate(dimo, settings, stores, ["1"])
    assert stores[1].list() == []


def test_partial_response_without_vin_keeps_samples(dimo, settings, stores):
    dimo.set_readings(42, [100, 150], vin=None)
    dimo.telemetry_errors[42] = [{"message": "no VIN VC found", "path": ["vinVCLatest"]}]

    result = _generate(dimo, settings, stores, ["42"])

    assert [(r.vin, r.odometer_reading, r.travelled_distance) for r in result.rows] == \
        [("N/A", 100, 0), ("N/A", 150, 50)]


def test_errors_without_usable_data_become_sentinel(dimo, settings, stores):
    dimo.telemetry[42] = None
    dimo.telemetry_errors[42] = [{"message": "signals unavailable"}]

    result = _generate(dimo, settings, stores, ["42"])

    assert [(r.token_id, r.vin) for r in result.rows] == [("42", "ERROR")]
