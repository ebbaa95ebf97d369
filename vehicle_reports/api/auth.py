from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from vehicle_reports.api.deps import get_settings, get_token_exchange, require_config
from vehicle_reports.core.config import Settings
from vehicle_reports.core.errors import ValidationError
from vehicle_reports.core.tokens import expires_at, is_expired
from vehicle_reports.services.token_exchange import TokenExchangeClient
from vehicle_reports.storage.models import CredentialRecord

router = APIRouter()


@router.post("/developer")
async def developer_token(
    config: CredentialRecord = Depends(require_config),
    exchange: TokenExchangeClient = Depends(get_token_exchange),
):
    cred = await exchange.get_developer_token(config.clientId, config.apiKey, config.redirectUri)
    return {"access_token": cred.token, "token_type": cred.token_type, "expires_in": cred.expires_in()}


class VehicleTokenInput(BaseModel):
    tokenId: str | int | None = None
    # el cliente puede mandar el token tal cual o la respuesta completa {access_token, ...}
    developerJwt: str | dict | None = None
    privileges: list[int] | None = None


@router.post("/vehicle")
async def vehicle_token(body: VehicleTokenInput, exchange: TokenExchangeClient = Depends(get_token_exchange)):
    developer = body.developerJwt
    if isinstance(developer, dict):
        developer = developer.get("access_token")
    if body.tokenId in (None, "") or not developer:
        raise ValidationError("Token ID and Developer JWT are required")

    cred = await exchange.get_vehicle_token(developer, body.tokenId, body.privileges)
    return {"token": cred.token, "token_type": cred.token_type, "expires_in": cred.expires_in()}


@router.get("/login-url")
async def login_url(
    redirectUri: str | None = Query(None),
    config: CredentialRecord = Depends(require_config),
    settings: Settings = Depends(get_settings),
):
    params = {
        "clientId": config.clientId,
        "redirectUri": redirectUri or config.redirectUri,
        "entryState": "EMAIL_INPUT",
        "forceEmail": "true",
    }
    return {"url": f"{settings.dimo_login_url}?{urlencode(params)}"}


class TokenStatusInput(BaseModel):
    token: str


@router.post("/token-status")
async def token_status(body: TokenStatusInput):
    exp = expires_at(body.token)
    return {"expired": is_expired(body.token), "expiresAt": exp.isoformat() if exp else None}
