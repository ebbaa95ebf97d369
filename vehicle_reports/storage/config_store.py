# vehicle_reports/storage/config_store.py
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError as SchemaError

from vehicle_reports.core.errors import NotFoundError, ValidationError
from vehicle_reports.storage.models import CredentialRecord

logger = logging.getLogger(__name__)


class ConfigStore:
    """Un único blob JSON con las credenciales; la última escritura gana."""

    def __init__(self, path: Path, default_redirect_uri: str):
        self.path = Path(path)
        self.default_redirect_uri = default_redirect_uri

    def save(self, client_id: str | None, api_key: str | None,
             redirect_uri: str | None = None) -> CredentialRecord:
        if not client_id or not api_key:
            raise ValidationError("Client ID and API Key are required")

        record = CredentialRecord(
            clientId=client_id,
            apiKey=api_key,
            redirectUri=redirect_uri or self.default_redirect_uri,
            createdAt=datetime.now(timezone.utc),
        )
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(record.model_dump_json(indent=2), encoding="utf-8")
        logger.info("Configuration saved for client %s", client_id)
        return record

    def load(self) -> CredentialRecord | None:
        # Sin fichero o blob corrupto -> None (no es un error)
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            return CredentialRecord.model_validate(raw)
        except FileNotFoundError:
            return None
        except (OSError, ValueError, SchemaError):
            logger.warning("Configuration blob at %s is unreadable, ignoring it", self.path)
            return None

    def delete(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            raise NotFoundError("No configuration found")
        logger.info("Configuration deleted")
