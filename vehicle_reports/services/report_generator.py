# vehicle_reports/services/report_generator.py
"""
Generación del informe de odómetro.

Por cada vehículo (en serie): token de vehículo -> consulta de telemetría -> filas.
Si un vehículo falla, se añade una fila centinela "ERROR" y se sigue con el resto;
el fallo de un vehículo nunca aborta el lote.
"""
from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Callable

import httpx

from vehicle_reports.core.config import Settings
from vehicle_reports.core.errors import ConfigurationError, ValidationError
from vehicle_reports.services.graphql import graphql_query
from vehicle_reports.services.token_exchange import TELEMETRY_PRIVILEGE, TokenExchangeClient
from vehicle_reports.storage.config_store import ConfigStore
from vehicle_reports.storage.report_store import ReportStore

logger = logging.getLogger(__name__)

ERROR = "ERROR"
NOT_AVAILABLE = "N/A"
DISTANCE_SIGNAL = "powertrainTransmissionTravelledDistance"

CSV_HEADER = [
    ("token_id", "Token ID"),
    ("vin", "VIN"),
    ("timestamp", "Timestamp"),
    ("odometer_reading", "Odometer Reading"),
    ("travelled_distance", "Travelled Distance"),
]

TELEMETRY_QUERY = """
query VehicleReport($tokenId: Int!, $from: Time!, $to: Time!) {
  vinVCLatest(tokenId: $tokenId) {
    vin
  }
  signals(tokenId: $tokenId, interval: "24h", from: $from, to: $to) {
    powertrainTransmissionTravelledDistance(agg: MAX)
    timestamp
  }
}
"""


@dataclass
class ReportRow:
    token_id: str
    vin: str
    timestamp: str
    odometer_reading: float | str
    travelled_distance: float

    @classmethod
    def error(cls, token_id: str) -> "ReportRow":
        return cls(token_id, ERROR, ERROR, ERROR, 0)


@dataclass
class ReportResult:
    filename: str
    path: Path
    rows: list[ReportRow] = field(default_factory=list)

    @property
    def record_count(self) -> int:
        return len(self.rows)


def report_filename(now: datetime) -> str:
    # Mismo formato que toISOString(): 2024-01-31T10:15:30.123Z, con ':' y '.' -> '-'
    now = now.astimezone(timezone.utc)
    stamp = now.strftime("%Y-%m-%dT%H:%M:%S") + f".{now.microsecond // 1000:03d}Z"
    return "vehicle-report-" + stamp.replace(":", "-").replace(".", "-") + ".csv"


def parse_day(value, name: str) -> date:
    if not value:
        raise ValidationError("Start date and end date are required")
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value), "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError(f"Invalid {name}: expected YYYY-MM-DD, got {value!r}")


def derive_rows(token_id: str, vin: str | None, signals) -> list[ReportRow]:
    """
    Convierte lecturas absolutas de odómetro en distancia recorrida por muestra.
    La primera muestra vale 0; el resto es la diferencia con la anterior, sin recortar
    negativos (si el feed no es monótono, se ve en el informe).
    """
    vin = vin or NOT_AVAILABLE
    if not signals or not isinstance(signals, list):
        return [ReportRow(token_id, vin, NOT_AVAILABLE, NOT_AVAILABLE, 0)]

    rows = []
    previous = None
    for sample in signals:
        reading = sample.get(DISTANCE_SIGNAL) or 0
        distance = 0 if previous is None else reading - previous
        rows.append(ReportRow(token_id, vin, sample.get("timestamp") or NOT_AVAILABLE, reading, distance))
        previous = reading
    return rows


def _csv_value(value):
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def render_csv(rows: list[ReportRow]) -> bytes:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow([title for _, title in CSV_HEADER])
    for row in rows:
        writer.writerow([_csv_value(getattr(row, attr)) for attr, _ in CSV_HEADER])
    return buf.getvalue().encode("utf-8")


class ReportGenerator:
    def __init__(
        self,
        http: httpx.AsyncClient,
        settings: Settings,
        exchange: TokenExchangeClient,
        config_store: ConfigStore,
        report_store: ReportStore,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.http = http
        self.telemetry_url = settings.dimo_telemetry_url
        self.exchange = exchange
        self.config_store = config_store
        self.report_store = report_store
        self.clock = clock

    async def generate(self, vehicle_ids, start_date, end_date) -> ReportResult:
        # 1) Validar (sin trabajo parcial si falla)
        if not vehicle_ids or not isinstance(vehicle_ids, list):
            raise ValidationError("Vehicle token IDs are required")
        start = parse_day(start_date, "startDate")
        end = parse_day(end_date, "endDate")
        if start > end:
            raise ValidationError("startDate must not be after endDate")

        # 2) Token de desarrollador (aborta todo si falla)
        config = self.config_store.load()
        if config is None:
            raise ConfigurationError("No configuration found. Please configure the app first.")
        developer = await self.exchange.get_developer_token(
            config.clientId, config.apiKey, config.redirectUri
        )

        # 3) Bucle por vehículo, secuencial y aislado
        rows: list[ReportRow] = []
        for vehicle_id in vehicle_ids:
            token_id = str(vehicle_id)
            try:
                rows.extend(await self._vehicle_rows(developer.token, token_id, start, end))
            except Exception:
                logger.warning("Failed to get data for vehicle %s", token_id, exc_info=True)
                rows.append(ReportRow.error(token_id))

        # 4) Materializar CSV
        filename = report_filename(self.clock())
        path = self.report_store.save(render_csv(rows), filename)
        logger.info("Report %s generated with %d rows for %d vehicles",
                    filename, len(rows), len(vehicle_ids))
        return ReportResult(filename=filename, path=path, rows=rows)

    async def _vehicle_rows(self, developer_token: str, token_id: str,
                            start: date, end: date) -> list[ReportRow]:
        vehicle = await self.exchange.get_vehicle_token(
            developer_token, token_id, [TELEMETRY_PRIVILEGE]
        )
        variables = {
            "tokenId": int(token_id),
            "from": f"{start.isoformat()}T00:00:00Z",
            "to": f"{end.isoformat()}T23:59:59Z",
        }
        data = await graphql_query(self.http, self.telemetry_url, TELEMETRY_QUERY, variables,
                                   token=vehicle.token, allow_partial=True)
        vin = (data.get("vinVCLatest") or {}).get("vin")
        return derive_rows(token_id, vin, data.get("signals"))
