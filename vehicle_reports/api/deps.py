# vehicle_reports/api/deps.py
"""Construcción explícita de componentes por petición a partir de app.state."""
from fastapi import Depends, Request

from vehicle_reports.core.config import Settings
from vehicle_reports.core.errors import ConfigurationError
from vehicle_reports.services.catalog import VehicleCatalog
from vehicle_reports.services.report_generator import ReportGenerator
from vehicle_reports.services.token_exchange import TokenExchangeClient
from vehicle_reports.storage.config_store import ConfigStore
from vehicle_reports.storage.models import CredentialRecord
from vehicle_reports.storage.report_store import ReportStore


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_config_store(settings: Settings = Depends(get_settings)) -> ConfigStore:
    return ConfigStore(settings.config_path, settings.default_redirect_uri)


def get_report_store(settings: Settings = Depends(get_settings)) -> ReportStore:
    return ReportStore(settings.data_dir)


def require_config(store: ConfigStore = Depends(get_config_store)) -> CredentialRecord:
    config = store.load()
    if config is None:
        raise ConfigurationError("No configuration found. Please configure the app first.")
    return config


def get_token_exchange(request: Request, settings: Settings = Depends(get_settings)) -> TokenExchangeClient:
    return TokenExchangeClient(request.app.state.http, settings, request.app.state.signer)


def get_catalog(request: Request, settings: Settings = Depends(get_settings)) -> VehicleCatalog:
    return VehicleCatalog(request.app.state.http, settings)


def get_report_generator(
    request: Request,
    settings: Settings = Depends(get_settings),
    exchange: TokenExchangeClient = Depends(get_token_exchange),
    config_store: ConfigStore = Depends(get_config_store),
    report_store: ReportStore = Depends(get_report_store),
) -> ReportGenerator:
    return ReportGenerator(request.app.state.http, settings, exchange, config_store, report_store,
                           clock=request.app.state.clock)
