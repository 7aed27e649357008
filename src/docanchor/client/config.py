"""Upload client configuration using Pydantic BaseSettings."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    """Settings for the upload workflow, loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Backend
    server_url: str = Field(default="http://localhost:5001", alias="SERVER_URL")
    pinata_gateway_url: str = Field(
        default="https://gateway.pinata.cloud", alias="PINATA_GATEWAY_URL"
    )

    # Timeouts (seconds)
    upload_timeout_seconds: float = Field(default=120.0, gt=0, alias="UPLOAD_TIMEOUT_SECONDS")
    transaction_timeout_seconds: float = Field(
        default=120.0, gt=0, alias="TRANSACTION_TIMEOUT_SECONDS"
    )
    database_save_timeout_seconds: float = Field(
        default=10.0, gt=0, alias="DATABASE_SAVE_TIMEOUT_SECONDS"
    )

    # Wallet (web3-backed provider)
    rpc_url: str = Field(default="http://localhost:8545", alias="RPC_URL")
    wallet_private_key: str = Field(default="", alias="WALLET_PRIVATE_KEY")
