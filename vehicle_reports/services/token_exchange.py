# vehicle_reports/services/token_exchange.py
"""
Cadena de credenciales contra el proveedor:

    client_id + api_key  --(reto web3 firmado)-->  token de desarrollador
    token de desarrollador + tokenId + privilegios  -->  token de vehículo

No se cachea nada: cada llamada vuelve a intercambiar.
"""
from __future__ import annotations

import logging
from typing import Callable

import httpx
from eth_account import Account
from eth_account.messages import encode_defunct

from vehicle_reports.core.config import Settings
from vehicle_reports.core.errors import UpstreamAuthError, ValidationError
from vehicle_reports.core.tokens import DEVELOPER_SCOPE, Credential, vehicle_scope
from vehicle_reports.services.graphql import vendor_message

logger = logging.getLogger(__name__)

ChallengeSigner = Callable[[str, str], str]

DEFAULT_SCOPE = "openid email"
TELEMETRY_PRIVILEGE = 1


def sign_challenge(challenge: str, private_key: str) -> str:
    """Firma EIP-191 (personal_sign) del reto con la API key del desarrollador."""
    signed = Account.sign_message(encode_defunct(text=challenge), private_key=private_key)
    signature = signed.signature.hex()
    return signature if signature.startswith("0x") else f"0x{signature}"


def parse_token_id(vehicle_id) -> int:
    try:
        return int(str(vehicle_id).strip())
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid vehicle token ID: {vehicle_id!r}")


class TokenExchangeClient:
    def __init__(self, http: httpx.AsyncClient, settings: Settings,
                 signer: ChallengeSigner = sign_challenge):
        self.http = http
        self.auth_url = settings.dimo_auth_url.rstrip("/")
        self.exchange_url = settings.dimo_token_exchange_url.rstrip("/")
        self.nft_address = settings.vehicle_nft_address
        self.signer = signer

    async def get_developer_token(self, client_id: str, api_key: str, domain: str) -> Credential:
        # 1) Pedir reto
        params = {
            "client_id": client_id,
            "domain": domain,
            "scope": DEFAULT_SCOPE,
            "response_type": "code",
            "address": client_id,
        }
        challenge = await self._post_auth("/auth/web3/generate_challenge", params=params)
        state, text = challenge.get("state"), challenge.get("challenge")
        if not state or not text:
            raise UpstreamAuthError("Failed to authenticate with DIMO: malformed challenge")

        # 2) Firmar con la API key
        try:
            signature = self.signer(text, api_key)
        except Exception as e:
            # eth-account lanza tipos distintos según el fallo de la clave
            raise UpstreamAuthError(f"Failed to sign authentication challenge: {e}") from e

        # 3) Enviar firma -> token de desarrollador
        form = {
            "client_id": client_id,
            "domain": domain,
            "state": state,
            "signature": signature,
            "grant_type": "authorization_code",
        }
        body = await self._post_auth("/auth/web3/submit_challenge", data=form)
        token = body.get("access_token")
        if not token:
            raise UpstreamAuthError("Failed to authenticate with DIMO: no access token returned")

        logger.info("Developer token obtained for client %s", client_id)
        return Credential.from_response(
            token, DEVELOPER_SCOPE, body.get("expires_in"), body.get("token_type")
        )

    async def get_vehicle_token(self, developer_token: str, vehicle_id,
                                privileges: list[int] | None = None) -> Credential:
        if not developer_token:
            raise ValidationError("Developer JWT is required")
        token_id = parse_token_id(vehicle_id)
        if privileges is None:
            privileges = [TELEMETRY_PRIVILEGE]
        elif not privileges:
            raise ValidationError("At least one privilege is required")
        privileges = list(privileges)

        payload = {
            "nftContractAddress": self.nft_address,
            "privileges": privileges,
            "tokenId": token_id,
        }
        headers = {"Authorization": f"Bearer {developer_token}"}
        failure = f"Failed to get vehicle access for token {token_id}"
        try:
            resp = await self.http.post(f"{self.exchange_url}/v1/tokens/exchange",
                                        json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise UpstreamAuthError(f"{failure}: {e}") from e

        if resp.is_error:
            detail = vendor_message(resp) or f"HTTP {resp.status_code}"
            raise UpstreamAuthError(f"{failure}: {detail}")
        try:
            body = resp.json()
        except ValueError as e:
            raise UpstreamAuthError(f"{failure}: non-JSON response") from e

        token = body.get("token") if isinstance(body, dict) else None
        if not token:
            raise UpstreamAuthError(f"{failure}: no token returned")
        return Credential.from_response(
            token, vehicle_scope(token_id), body.get("expires_in"), body.get("token_type")
        )

    async def _post_auth(self, path: str, params: dict | None = None, data: dict | None = None) -> dict:
        try:
            resp = await self.http.post(f"{self.auth_url}{path}", params=params, data=data)
        except httpx.HTTPError as e:
            logger.error("Auth request to %s failed: %s", path, e)
            raise UpstreamAuthError(f"Failed to authenticate with DIMO: {e}") from e

        if resp.is_error:
            detail = vendor_message(resp)
            raise UpstreamAuthError(
                detail or "Failed to authenticate with DIMO. Please check your credentials."
            )
        try:
            body = resp.json()
        except ValueError as e:
            raise UpstreamAuthError("Failed to authenticate with DIMO: non-JSON response") from e
        if not isinstance(body, dict):
            raise UpstreamAuthError("Failed to authenticate with DIMO: unexpected response")
        return body
