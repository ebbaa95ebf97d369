# vehicle_reports/storage/models.py
from datetime import datetime, timezone

from pydantic import BaseModel, Field


class CredentialRecord(BaseModel):
    """Credenciales de la aplicación en el proveedor (una sola por despliegue)."""

    clientId: str
    apiKey: str
    redirectUri: str
    createdAt: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
