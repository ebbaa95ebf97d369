from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    # Almacenamiento en ficheros planos (config + informes CSV)
    data_dir: Path = Field(Path("./tmp"), alias="DATA_DIR")
    config_filename: str = Field("app-config.json", alias="CONFIG_FILENAME")
    default_redirect_uri: str = Field("http://localhost:5173", alias="DEFAULT_REDIRECT_URI")

    # Endpoints del proveedor (DIMO)
    dimo_auth_url: str = Field("https://auth.dimo.zone", alias="DIMO_AUTH_URL")
    dimo_token_exchange_url: str = Field(
        "https://token-exchange-api.dimo.zone", alias="DIMO_TOKEN_EXCHANGE_URL"
    )
    dimo_identity_url: str = Field("https://identity-api.dimo.zone/query", alias="DIMO_IDENTITY_URL")
    dimo_telemetry_url: str = Field("https://telemetry-api.dimo.zone/query", alias="DIMO_TELEMETRY_URL")
    dimo_login_url: str = Field("https://login.dimo.org", alias="DIMO_LOGIN_URL")
    vehicle_nft_address: str = Field(
        "0xbA5738a18d83D41847dfFbDC6101d37C69c9B0cF", alias="VEHICLE_NFT_ADDRESS"
    )
    http_timeout: float = Field(30.0, alias="HTTP_TIMEOUT")

    # Cliente web
    cors_origins: list[str] = Field(
        ["https://localhost:5173", "https://localhost:3443", "http://localhost:3001"],
        alias="CORS_ORIGINS",
    )
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        populate_by_name=True,  # permite defaults si no hay variable de entorno
    )

    @property
    def config_path(self) -> Path:
        return self.data_dir / self.config_filename


settings = Settings()
