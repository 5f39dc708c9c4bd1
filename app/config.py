from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # required config for MVP
    database_url: str = ""
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_timeout_s: int = 30
    db_pool_recycle_s: int = 1800

    log_level: str = "INFO"
    log_json: bool = False

    # llm
    llm_enabled: bool = True
    llm_provider: str = "openai"
    openai_api_key: str | None = None
    llm_model: str = "gpt-4o-mini"  # safe default- override via env
    llm_temperature: float = 0.0
    llm_chat_temperature: float = 0.4
    llm_timeout_s: int = 30
    embeddings_enabled: bool = False
    embedding_model: str = "text-embedding-3-small"

    # sui + market data
    sui_network: str = "mainnet"
    sui_rpc_url: str = ""  # overrides the public fullnode for sui_network
    sui_rpc_timeout_s: int = 15
    dexscreener_base_url: str = "https://api.dexscreener.com"
    market_timeout_s: int = 10
    aggregator_max_workers: int = 8
    aggregator_timeout_s: float = 20.0
    transactions_limit: int = 20
    position_object_types: list[str] = []

    # chat
    chat_recent_messages: int = 10
    chat_similar_recall_k: int = 0

    # room context refresh
    context_refresh_threshold: int = 5
    context_refresh_window: int = 10
    context_keywords_top_k: int = 10
    context_keyword_min_length: int = 3
    context_refresh_timeout_s: int = 60
    context_worker_threads: int = 2

    # room event stream
    events_keepalive_s: float = 15.0
    events_queue_size: int = 100

    langsmith_tracing: bool = False
    langsmith_api_key: str | None = None
    langsmith_project: str = "sui-room-chat"
    langsmith_endpoint: str = "https://api.smith.langchain.com"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="",
        case_sensitive=False,
        extra="ignore",
    )


    @property
    def DATABASE_URL(self) -> str:
        return self.database_url

    @property
    def LLM_ENABLED(self) -> bool:
        return self.llm_enabled

    @property
    def LLM_PROVIDER(self) -> str:
        return self.llm_provider

    @property
    def LLM_MODEL(self) -> str:
        return self.llm_model

    @property
    def LLM_TIMEOUT_S(self) -> int:
        return self.llm_timeout_s

    @property
    def OPENAI_API_KEY(self) -> str | None:
        return self.openai_api_key


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader (process-level).
    """
    return Settings()
