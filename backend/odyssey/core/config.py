"""Odyssey asset pipeline configuration (assets, storage gateway, ledger node)."""

from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Project root directory (parent of backend/)
PROJECT_ROOT = Path(__file__).parent.parent.parent.parent.resolve()

# Load .env file into environment variables
env_path = PROJECT_ROOT / ".env"
load_dotenv(env_path)


class Settings(BaseSettings):
    """Asset pipeline configuration with fail-loud validation."""

    model_config = SettingsConfigDict(env_file=str(env_path), extra="ignore")

    # Local asset layout (resolved relative to project root)
    assets_dir: str = Field(default=str(PROJECT_ROOT / "assets"))
    randomize_dir_name: str = Field(default="randomize")
    trait_config_filename: str = Field(default="trait_config.json")

    # Collection metadata used when synthesizing token documents
    collection_name: str = Field(default="Odyssey")
    collection_description: str = Field(default="")

    # Permanent storage (Arweave node HTTP API)
    storage_base_uri: str = Field(default="https://arweave.net")
    arweave_node_url: str = Field(default="https://arweave.net")
    user_agent: str = Field(default="odyssey")
    user_agent_version: str = Field(default="0.0.1")
    wallet_file: str = Field(default=str(PROJECT_ROOT / "wallet.json"))
    upload_timeout_s: int = Field(default=60)
    max_concurrent_uploads: int = Field(default=1, ge=1)

    # Ledger (Aptos node REST API, read-only)
    aptos_node_url: str = Field(default="https://fullnode.testnet.aptoslabs.com/v1")
    odyssey_module: str = Field(default="")  # e.g. 0x1234::odyssey
    ledger_timeout_s: int = Field(default=30)

    # Logging (odyssey/data/logs.txt)
    log_level: str = Field(default="INFO")
    log_max_lines: int = Field(default=10000, ge=100)


settings = Settings()
