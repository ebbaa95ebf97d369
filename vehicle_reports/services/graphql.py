# vehicle_reports/services/graphql.py
from __future__ import annotations

import logging

import httpx

from vehicle_reports.core.errors import UpstreamQueryError

logger = logging.getLogger(__name__)


def vendor_message(response: httpx.Response) -> str | None:
    """Extrae el mensaje de error del proveedor si viene en el cuerpo JSON."""
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    for key in ("message", "error_description", "error"):
        value = body.get(key)
        if isinstance(value, str) and value:
            return value
    return None


async def graphql_query(
    http: httpx.AsyncClient,
    url: str,
    query: str,
    variables: dict | None = None,
    token: str | None = None,
    allow_partial: bool = False,
) -> dict:
    headers = {"Content-Type": "application/json"}
    if token:
        headers["Authorization"] = f"Bearer {token}"

    try:
        resp = await http.post(url, json={"query": query, "variables": variables or {}}, headers=headers)
    except httpx.HTTPError as e:
        raise UpstreamQueryError(f"Vendor query failed: {e}") from e

    if resp.is_error:
        msg = vendor_message(resp) or f"HTTP {resp.status_code}"
        raise UpstreamQueryError(f"Vendor query failed: {msg}")

    try:
        body = resp.json()
    except ValueError as e:
        raise UpstreamQueryError("Vendor query returned a non-JSON body") from e

    # El proveedor puede contestar 200 con un sobre de errores
    errors = body.get("errors") if isinstance(body, dict) else None
    data = body.get("data") if isinstance(body, dict) else None
    if errors:
        first = errors[0] if isinstance(errors, list) and errors else {}
        msg = first.get("message") if isinstance(first, dict) else None
        # Respuesta parcial: errores en algunos campos pero con data utilizable
        if allow_partial and isinstance(data, dict):
            logger.warning("Partial GraphQL response from %s: %s", url, errors)
            return data
        logger.error("GraphQL errors from %s: %s", url, errors)
        raise UpstreamQueryError(f"GraphQL errors: {msg or errors}")

    if not isinstance(data, dict):
        raise UpstreamQueryError("Vendor query returned no data")
    return data
