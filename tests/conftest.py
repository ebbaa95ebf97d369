# tests/conftest.py
import itertools
import json
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from urllib.parse import parse_qs

import httpx
import pytest
from fastapi.testclient import TestClient

# --- Asegurar que podemos importar el paquete desde la raíz del repo ---
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from vehicle_reports.core.config import Settings

DEV_TOKEN = "dev-token-abc"
START = datetime(2024, 2, 1, 12, 30, 45, 123000, tzinfo=timezone.utc)


class FakeDimo:
    """
    Doble del proveedor detrás de httpx.MockTransport:
    auth (reto web3), token exchange, identity y telemetry.
    """

    def __init__(self, vehicles=None):
        self.requests: list[httpx.Request] = []
        self.reject_credentials = False
        self.failing_exchange: set[int] = set()
        self.failing_telemetry: set[int] = set()
        self.telemetry: dict[int, dict] = {}
        self.telemetry_errors: dict[int, list] = {}
        self.identity_error: str | None = None
        self.vehicles = vehicles if vehicles is not None else [
            {
                "tokenId": i,
                "definition": {"make": "Tesla", "model": "Model 3", "year": 2020 + i % 4},
                "aftermarketDevice": {"imei": f"35{i:013d}"} if i % 2 == 0 else None,
                "syntheticDevice": {"mintedAt": "2024-01-15T10:20:30Z"} if i % 3 == 0 else None,
            }
            for i in range(1, 121)
        ]

    def set_readings(self, token_id: int, readings, vin="5YJ3E1EA7KF000001"):
        self.telemetry[token_id] = {
            "vinVCLatest": {"vin": vin} if vin else None,
            "signals": [
                {"powertrainTransmissionTravelledDistance": r, "timestamp": f"2024-01-{i + 1:02d}T00:00:00Z"}
                for i, r in enumerate(readings)
            ],
        }

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host, path = request.url.host, request.url.path

        if host == "auth.dimo.zone":
            if self.reject_credentials:
                return httpx.Response(401, json={"message": "invalid client credentials"})
            if path == "/auth/web3/generate_challenge":
                return httpx.Response(200, json={"state": "st-1", "challenge": "sign me"})
            if path == "/auth/web3/submit_challenge":
                form = parse_qs(request.content.decode())
                assert form["signature"] == ["0xsigned"]
                return httpx.Response(200, json={"access_token": DEV_TOKEN, "token_type": "Bearer", "expires_in": 3600})

        if host == "token-exchange-api.dimo.zone":
            body = json.loads(request.content)
            if request.headers.get("authorization") != f"Bearer {DEV_TOKEN}":
                return httpx.Response(401, json={"message": "bad developer token"})
            if body["tokenId"] in self.failing_exchange:
                return httpx.Response(403, json={"message": "privileges not granted"})
            return httpx.Response(200, json={"token": f"vehicle-{body['tokenId']}"})

        if host == "identity-api.dimo.zone":
            if self.identity_error:
                return httpx.Response(200, json={"errors": [{"message": self.identity_error}]})
            variables = json.loads(request.content)["variables"]
            start = int(variables["after"]) if variables.get("after") else 0
            page = self.vehicles[start:start + variables["first"]]
            end = start + len(page)
            return httpx.Response(200, json={"data": {"vehicles": {
                "totalCount": len(self.vehicles),
                "pageInfo": {"hasNextPage": end < len(self.vehicles), "endCursor": str(end)},
                "nodes": page,
            }}})

        if host == "telemetry-api.dimo.zone":
            token_id = int(request.headers["authorization"].removeprefix("Bearer vehicle-"))
            if token_id in self.failing_telemetry:
                return httpx.Response(500, json={"message": "telemetry unavailable"})
            body = {"data": self.telemetry.get(token_id, {"vinVCLatest": None, "signals": []})}
            if token_id in self.telemetry_errors:
                body["errors"] = self.telemetry_errors[token_id]
            return httpx.Response(200, json=body)

        return httpx.Response(404, json={"message": f"unexpected {host}{path}"})


def fake_signer(challenge: str, private_key: str) -> str:
    return "0xsigned"


def ticking_clock():
    ticks = itertools.count()
    return lambda: START + timedelta(seconds=next(ticks))


@pytest.fixture
def settings(tmp_path):
    return Settings(data_dir=tmp_path / "data")


@pytest.fixture
def dimo():
    return FakeDimo()


@pytest.fixture
def client(settings, dimo):
    from vehicle_reports.main import create_app
    app = create_app(settings, transport=dimo.transport(), signer=fake_signer, clock=ticking_clock())
    # Con 'with' forzamos lifespan: crea el cliente httpx y lo cierra al final
    with TestClient(app) as c:
        yield c


@pytest.fixture
def configured(client):
    r = client.post("/api/config", json={"clientId": "0xabc", "apiKey": "k1"})
    assert r.status_code == 200
    return client
