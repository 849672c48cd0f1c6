from pydantic import validator
from pydantic_settings import BaseSettings
from typing import Optional, Dict, Any, List


class Settings(BaseSettings):
    # Database
    DB_USER: str = "postgres"
    DB_PASSWORD: str = "postgres"
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_NAME: str = "xburn"
    DATABASE_URL: Optional[str] = None

    @validator("DATABASE_URL", pre=True, always=True)
    def assemble_db_connection(cls, v: Optional[str], values: Dict[str, Any]) -> Any:
        if isinstance(v, str):
            return v
        return (
            f"postgresql+psycopg2://{values.get('DB_USER')}:{values.get('DB_PASSWORD')}@"
            f"{values.get('DB_HOST')}:{values.get('DB_PORT')}/{values.get('DB_NAME')}"
        )

    DB_POOL_SIZE: int = 5

    # Chain
    CHAIN_ID: str = "1"
    CHAIN_NAME: str = "ethereum"
    RPC_URL: str = "https://eth.llamarpc.com"
    BACKUP_RPC_URLS: str = ""  # comma separated, tried in order after RPC_URL
    RPC_TIMEOUT: int = 30

    # Indexed contracts
    XBURN_MINTER_CONTRACT: str = "0x0598dd8aCaBD947e2df48E1368779849D07f8483"
    XBURN_NFT_CONTRACT: str = "0xCB7d2A11d3271D2793E76C37Ad06ddEEb514C1fa"

    # Indexing settings
    START_BLOCK: int = 0
    BATCH_SIZE: int = 500
    REORG_BUFFER_BLOCKS: int = 10
    BATCH_GROWTH_FACTOR: float = 1.5
    POLL_INTERVAL: float = 15.0  # seconds to sleep once caught up with the head
    TIMESTAMP_CACHE_DEPTH: int = 1000

    # Error handling
    MAX_RETRIES: int = 5
    RETRY_BASE_DELAY: float = 1.0
    MAX_RETRY_DELAY: float = 30.0

    # Monitoring
    LOG_LEVEL: str = "INFO"
    HEALTH_STALE_SECONDS: int = 300

    # API
    ENABLE_API: bool = False
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 3000

    @property
    def rpc_endpoints(self) -> List[str]:
        backups = [url.strip() for url in self.BACKUP_RPC_URLS.split(",") if url.strip()]
        return [self.RPC_URL, *backups]

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
