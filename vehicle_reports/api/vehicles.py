# vehicle_reports/api/vehicles.py
from fastapi import APIRouter, Depends, Header, Query

from vehicle_reports.api.deps import get_catalog, get_token_exchange, require_config
from vehicle_reports.core.errors import ValidationError
from vehicle_reports.core.tokens import is_expired, privileged_address
from vehicle_reports.services.catalog import VehicleCatalog
from vehicle_reports.services.token_exchange import TokenExchangeClient
from vehicle_reports.storage.models import CredentialRecord

router = APIRouter()


def _bearer(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


@router.get("")
async def list_vehicles(
    after: str | None = Query(None),
    authorization: str | None = Header(None),
    config: CredentialRecord = Depends(require_config),
    exchange: TokenExchangeClient = Depends(get_token_exchange),
    catalog: VehicleCatalog = Depends(get_catalog),
):
    # Con sesión de usuario se filtra por su wallet; si no, por la licencia (clientId)
    user_jwt = _bearer(authorization)
    if user_jwt:
        if is_expired(user_jwt):
            raise ValidationError("User session expired. Please log in again.")
        privileged = privileged_address(user_jwt)
    else:
        privileged = config.clientId

    developer = await exchange.get_developer_token(config.clientId, config.apiKey, config.redirectUri)
    return await catalog.list_vehicles(developer.token, privileged, after)
