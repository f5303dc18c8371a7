from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Chain RPC: comma-separated, tried in order with sticky rotation
    rpc_urls: str = "https://api.mainnet-beta.solana.com"
    rpc_timeout_sec: float = 12.0

    # Holder snapshot
    top_holders_limit: int = 20
    owner_resolution: str = "auto"  # auto | batch | individual
    owner_resolution_concurrency: int = 8  # individual mode, keep within 5..10

    # DexScreener
    chain_id: str = "solana"  # pairs on other chains are dropped unless nothing else matches
    dexscreener_max_rps: float = 4.0
    dexscreener_timeout_sec: float = 12.0

    # Risk weights/thresholds override, JSON object with ScoringConfig fields
    risk_config_json: str = ""

    # Logging
    log_level: str = "INFO"
    json_logs: bool = False
    log_file: str = ""  # e.g. logs/tokenscan_{time:YYYY-MM-DD}.log

    @property
    def rpc_endpoints(self) -> list[str]:
        return [url.strip() for url in self.rpc_urls.split(",") if url.strip()]


settings = Settings()
