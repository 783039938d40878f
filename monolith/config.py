from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Credential pools (comma-separated, never committed)
    search_api_keys: str = ""
    llm_api_keys: str = ""

    # Search + rerank provider
    search_provider: str = "langsearch"  # langsearch
    search_base_url: str = "https://api.langsearch.com/v1"
    rerank_model: str = "langsearch-reranker-v1"

    # Chat-completion provider (OpenAI-compatible)
    llm_base_url: str = "https://api.longcat.chat/openai/v1"
    default_model: str = "LongCat-Flash-Chat"
    reasoning_model: str = "LongCat-Flash-Thinking"
    planner_model: str = ""  # optional override for planning only

    # Rotation pacing
    rotation_delay_seconds: float = 1.0
    rate_limit_delay_seconds: float = 2.0

    # Timeouts
    search_timeout_seconds: float = 20.0
    rerank_timeout_seconds: float = 20.0
    planner_timeout_seconds: float = 20.0
    synthesis_timeout_seconds: float = 30.0
    synthesis_deep_timeout_seconds: float = 60.0

    # Planning
    planner_max_query_paths: int = 4
    planner_history_turns: int = 4
    planner_temperature: float = 0.1

    # Layered search
    layer_pacing_seconds: float = 0.15
    search_max_parallel_requests: int = 4
    depth_result_counts: dict[str, int] = {
        "surface": 15,
        "standard": 20,
        "deep": 35,
        "elite": 40,
    }
    max_results_per_host: int = 3

    # Elite rerank
    rerank_chunk_size: int = 50
    rerank_max_documents: int = 100
    rerank_snippet_chars: int = 800
    domain_reputation: dict[str, float] = {
        "gov": 0.3,
        "mil": 0.25,
        "edu": 0.25,
        "int": 0.2,
        "who.int": 0.3,
        "nih.gov": 0.3,
        "europa.eu": 0.25,
        "un.org": 0.25,
        "wikipedia.org": 0.2,
        "reuters.com": 0.2,
        "apnews.com": 0.2,
        "bbc.com": 0.15,
        "bbc.co.uk": 0.15,
        "nytimes.com": 0.15,
        "ft.com": 0.15,
        "economist.com": 0.15,
        "bloomberg.com": 0.15,
        "nature.com": 0.2,
        "science.org": 0.2,
        "arxiv.org": 0.15,
        "github.com": 0.1,
        "stackoverflow.com": 0.1,
    }
    freshness_boost_hour: float = 0.15
    freshness_boost_day: float = 0.08
    recency_boost: float = 0.05
    recency_window_days: int = 15

    # Synthesis
    context_limit: int = 20
    context_limit_deep: int = 40
    grounding_snippet_chars: int = 1200
    synthesis_max_tokens: int = 2048
    synthesis_deep_max_tokens: int = 4096
    synthesis_reasoning_max_tokens: int = 8192
    synthesis_temperature: float = 0.7

    # App
    cors_origins: str = "http://localhost:3000"
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"
    log_to_file: bool = True
    log_dir: str = "logs"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",")]

    @property
    def search_key_list(self) -> list[str]:
        return [k.strip() for k in self.search_api_keys.split(",") if k.strip()]

    @property
    def llm_key_list(self) -> list[str]:
        return [k.strip() for k in self.llm_api_keys.split(",") if k.strip()]


settings = Settings()
