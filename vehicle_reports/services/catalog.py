# vehicle_reports/services/catalog.py
from __future__ import annotations

import logging
from datetime import datetime

import httpx

from vehicle_reports.core.config import Settings
from vehicle_reports.core.errors import UpstreamQueryError
from vehicle_reports.services.graphql import graphql_query

logger = logging.getLogger(__name__)

PAGE_SIZE = 50
NOT_AVAILABLE = "N/A"

VEHICLES_QUERY = """
query GetVehicles($first: Int!, $after: String, $privileged: Address!) {
  vehicles(first: $first, after: $after, filterBy: { privileged: $privileged }) {
    totalCount
    pageInfo {
      hasNextPage
      endCursor
    }
    nodes {
      tokenId
      definition {
        make
        model
        year
      }
      aftermarketDevice {
        imei
      }
      syntheticDevice {
        mintedAt
      }
    }
  }
}
"""


def format_mint_date(value) -> str:
    """Fecha de acuñado como fecha local (M/D/YYYY), sin hora."""
    if not value:
        return NOT_AVAILABLE
    try:
        raw = str(value)
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        d = datetime.fromisoformat(raw).date()
    except ValueError:
        return NOT_AVAILABLE
    return f"{d.month}/{d.day}/{d.year}"


def normalize_vehicle(node: dict) -> dict:
    definition = node.get("definition") or {}
    make, model, year = definition.get("make"), definition.get("model"), definition.get("year")
    vehicle_type = " ".join(str(p) for p in (make, model, year) if p not in (None, ""))
    imei = (node.get("aftermarketDevice") or {}).get("imei")
    minted = (node.get("syntheticDevice") or {}).get("mintedAt")
    return {
        "tokenId": node.get("tokenId"),
        "vehicleType": vehicle_type or "Unknown",
        "make": make,
        "model": model,
        "year": year,
        "imei": imei or NOT_AVAILABLE,
        "mintedAt": format_mint_date(minted),
    }


class VehicleCatalog:
    def __init__(self, http: httpx.AsyncClient, settings: Settings):
        self.http = http
        self.url = settings.dimo_identity_url

    async def list_vehicles(self, developer_token: str, privileged: str,
                            after: str | None = None) -> dict:
        variables = {"first": PAGE_SIZE, "after": after or None, "privileged": privileged}
        data = await graphql_query(self.http, self.url, VEHICLES_QUERY, variables, token=developer_token)

        try:
            vehicles = data["vehicles"]
            nodes = [normalize_vehicle(n) for n in vehicles["nodes"]]
            page_info = vehicles["pageInfo"]
            result = {
                "totalCount": vehicles["totalCount"],
                "pageInfo": {
                    "hasNextPage": bool(page_info.get("hasNextPage")),
                    "endCursor": page_info.get("endCursor"),
                },
                "nodes": nodes,
            }
        except (KeyError, TypeError, AttributeError) as e:
            raise UpstreamQueryError(f"Unexpected vehicles payload: {e}") from e

        logger.debug("Listed %d vehicles (after=%s)", len(nodes), after)
        return result
