# vehicle_reports/api/config.py
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from vehicle_reports.api.deps import get_config_store
from vehicle_reports.core.errors import NotFoundError
from vehicle_reports.storage.config_store import ConfigStore

router = APIRouter()


class ConfigInput(BaseModel):
    clientId: str | None = None
    apiKey: str | None = None
    redirectUri: str | None = None


@router.get("")
async def get_config(store: ConfigStore = Depends(get_config_store)):
    config = store.load()
    if config is None:
        raise NotFoundError("No configuration found")
    return config.model_dump(mode="json")


@router.post("")
async def save_config(body: ConfigInput, store: ConfigStore = Depends(get_config_store)):
    config = store.save(body.clientId, body.apiKey, body.redirectUri)
    return config.model_dump(mode="json")


@router.delete("")
async def delete_config(store: ConfigStore = Depends(get_config_store)):
    store.delete()
    return {"message": "Configuration deleted successfully"}
