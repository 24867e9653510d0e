from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

# Only this address may create proposals unless configured otherwise
DEFAULT_ADMIN_ADDRESS = "0xF5512860735795994bB45e4DdeBE7686241167aD"


class Settings(BaseSettings):
    """
    Settings of the governance API, read from ATA_GOV_* environment variables.
    Missing infrastructure urls are allowed, the API degrades to empty reads then.
    """

    model_config = SettingsConfigDict(
        env_prefix="ATA_GOV_", env_file=".env", extra="ignore"
    )

    # peewee database url, e.g. sqlite:///governance.db or postgresql://...
    database_url: Optional[str] = None
    debug_sql: bool = False

    # memory:// or redis://...
    cache_url: Optional[str] = None
    voting_power_cache_ttl: int = 300
    historical_voting_power_cache_ttl: int = 300

    rpc_url: Optional[str] = None
    rpc_timeout: float = 10.0
    staking_contract_address: Optional[str] = None

    chain_id: int = 8453
    signing_domain_name: str = "ATA Voting"
    signing_domain_version: str = "1"

    admin_addresses: List[str] = [DEFAULT_ADMIN_ADDRESS]
    default_voting_days: int = 7
    max_voting_days: int = 365

    cors_origins: List[str] = ["*"]
