"""
Configuration for Souvenir.

Supports loading from:
1. Environment variables (highest priority)
2. YAML config file
3. Default values (fallback)
"""

import os
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator


class ChunkingMode(str, Enum):
    """Chunking strategy selector."""

    FIXED = "fixed"  # Token windows with overlap
    HIERARCHICAL = "hierarchical"  # Paragraph -> line -> sentence -> word -> character splitting


class LLMConfig(BaseModel):
    """LLM provider configuration (used by the extractor)."""

    provider: str = "ollama"  # ollama, openai
    model: str = "llama3.1:8b"
    base_url: str | None = None  # None: provider default
    api_key: str | None = None
    temperature: float = 0.3
    max_tokens: int = 2000
    timeout: float = 120.0


class EmbedderConfig(BaseModel):
    """Embedder configuration."""

    provider: str = "ollama"  # ollama, openai
    model: str = "nomic-embed-text"
    base_url: str | None = None  # None: provider default
    api_key: str | None = None
    timeout: float = 120.0
    # Expected embedding length, checked against the first real embedding
    dimension: int = 1536


class TokenizerConfig(BaseModel):
    """Tokenizer configuration."""

    provider: str = "tiktoken"  # tiktoken, approximate
    model: str = "cl100k_base"
    chars_per_token: float = Field(default=4.0, gt=0)


class ChunkingConfig(BaseModel):
    """Chunking configuration."""

    mode: ChunkingMode = ChunkingMode.FIXED
    chunk_size: int = Field(default=1000, ge=1)
    chunk_overlap: int = Field(default=200, ge=0)
    min_characters_per_chunk: int = Field(default=24, ge=1)

    @model_validator(mode="after")
    def check_overlap(self) -> "ChunkingConfig":
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError("chunk_overlap must be smaller than chunk_size")
        return self


class ProcessingConfig(BaseModel):
    """Chunk processing and auto-batch configuration."""

    auto_processing: bool = False
    auto_process_delay: float = 1.0  # seconds of add() silence before a batch runs
    batch_size: int = Field(default=10, ge=1)
    similarity_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    generate_summaries: bool = False  # session summary nodes; chunk summaries always run
    summary_max_length: int = 200
    session_summary_max_length: int = 500
    max_summary_edges: int = 10
    claim_timeout: float = 300.0  # seconds before an abandoned claim can be retaken


class RetrievalConfig(BaseModel):
    """Retrieval defaults."""

    min_relevance_score: float = Field(default=0.7, ge=-1.0, le=1.0)
    max_results: int = 10


class StoreConfig(BaseModel):
    """Persistence backend configuration."""

    backend: str = "sqlite"
    db_path: str = "data/souvenir.db"


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    log_to_file: bool = False
    log_dir: str = "logs"
    file_rotation: str = "10 MB"
    file_retention: str = "7 days"
    compression: str = "zip"
    serialize: bool = True


class Config(BaseModel):
    """Main configuration."""

    llm: LLMConfig = Field(default_factory=LLMConfig)
    embedder: EmbedderConfig = Field(default_factory=EmbedderConfig)
    tokenizer: TokenizerConfig = Field(default_factory=TokenizerConfig)
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    processing: ProcessingConfig = Field(default_factory=ProcessingConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    # Disable to run without an extractor (chunk nodes + embeddings only)
    enable_extraction: bool = True

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> "Config":
        """
        Load configuration from environment variables.

        Priority: .env file -> system environment variables -> defaults

        Args:
            env_file: Optional path to .env file (default: .env in working directory)

        Returns:
            Config instance

        Environment variables:
            SOUVENIR_LLM_PROVIDER: LLM provider (ollama, openai)
            SOUVENIR_LLM_MODEL: LLM model name
            SOUVENIR_LLM_BASE_URL: LLM base URL
            SOUVENIR_LLM_API_KEY: LLM API key (for OpenAI)
            SOUVENIR_EMBEDDER_PROVIDER: Embedder provider
            SOUVENIR_EMBEDDER_MODEL: Embedder model name
            SOUVENIR_EMBEDDER_API_KEY: Embedder API key (for OpenAI)
            SOUVENIR_EMBEDDING_DIMENSIONS: Expected embedding dimension
            SOUVENIR_CHUNKING_MODE: fixed or hierarchical
            SOUVENIR_CHUNK_SIZE / SOUVENIR_CHUNK_OVERLAP: Chunking policy
            SOUVENIR_AUTO_PROCESSING: Enable debounced background processing
            SOUVENIR_AUTO_PROCESS_DELAY / SOUVENIR_BATCH_SIZE: Scheduler policy
            SOUVENIR_MIN_RELEVANCE_SCORE: Default vector search threshold
            SOUVENIR_DB_PATH: SQLite database path
            SOUVENIR_LOG_LEVEL: Log level
        """
        if env_file:
            load_dotenv(env_file)
        elif Path(".env").exists():
            load_dotenv()

        def get_env(key: str, default: Any = None) -> Any:
            """Get environment variable with type conversion."""
            value = os.getenv(key)
            if value is None:
                return default
            if value == "":
                return default
            if isinstance(default, bool):
                return str(value).lower() in ("true", "1", "yes")
            if isinstance(default, int):
                return int(value)
            if isinstance(default, float):
                return float(value)
            return value

        return cls(
            llm=LLMConfig(
                provider=get_env("SOUVENIR_LLM_PROVIDER", "ollama"),
                model=get_env("SOUVENIR_LLM_MODEL", "llama3.1:8b"),
                base_url=get_env("SOUVENIR_LLM_BASE_URL"),
                api_key=get_env("SOUVENIR_LLM_API_KEY"),
                temperature=get_env("SOUVENIR_LLM_TEMPERATURE", 0.3),
                max_tokens=get_env("SOUVENIR_LLM_MAX_TOKENS", 2000),
                timeout=get_env("SOUVENIR_LLM_TIMEOUT", 120.0),
            ),
            embedder=EmbedderConfig(
                provider=get_env("SOUVENIR_EMBEDDER_PROVIDER", "ollama"),
                model=get_env("SOUVENIR_EMBEDDER_MODEL", "nomic-embed-text"),
                base_url=get_env("SOUVENIR_EMBEDDER_BASE_URL"),
                api_key=get_env("SOUVENIR_EMBEDDER_API_KEY"),
                timeout=get_env("SOUVENIR_EMBEDDER_TIMEOUT", 120.0),
                dimension=get_env("SOUVENIR_EMBEDDING_DIMENSIONS", 1536),
            ),
            tokenizer=TokenizerConfig(
                provider=get_env("SOUVENIR_TOKENIZER_PROVIDER", "tiktoken"),
                model=get_env("SOUVENIR_TOKENIZER_MODEL", "cl100k_base"),
            ),
            chunking=ChunkingConfig(
                mode=ChunkingMode(get_env("SOUVENIR_CHUNKING_MODE", ChunkingMode.FIXED.value)),
                chunk_size=get_env("SOUVENIR_CHUNK_SIZE", 1000),
                chunk_overlap=get_env("SOUVENIR_CHUNK_OVERLAP", 200),
                min_characters_per_chunk=get_env("SOUVENIR_MIN_CHARACTERS_PER_CHUNK", 24),
            ),
            processing=ProcessingConfig(
                auto_processing=get_env("SOUVENIR_AUTO_PROCESSING", False),
                auto_process_delay=get_env("SOUVENIR_AUTO_PROCESS_DELAY", 1.0),
                batch_size=get_env("SOUVENIR_BATCH_SIZE", 10),
                similarity_threshold=get_env("SOUVENIR_SIMILARITY_THRESHOLD", 0.8),
                generate_summaries=get_env("SOUVENIR_GENERATE_SUMMARIES", False),
            ),
            retrieval=RetrievalConfig(
                min_relevance_score=get_env("SOUVENIR_MIN_RELEVANCE_SCORE", 0.7),
                max_results=get_env("SOUVENIR_MAX_RESULTS", 10),
            ),
            store=StoreConfig(
                backend=get_env("SOUVENIR_STORE_BACKEND", "sqlite"),
                db_path=get_env("SOUVENIR_DB_PATH", "data/souvenir.db"),
            ),
            logging=LoggingConfig(
                level=get_env("SOUVENIR_LOG_LEVEL", "INFO"),
                log_to_file=get_env("SOUVENIR_LOG_TO_FILE", False),
                log_dir=get_env("SOUVENIR_LOG_DIR", "logs"),
                file_rotation=get_env("SOUVENIR_LOG_FILE_ROTATION", "10 MB"),
                file_retention=get_env("SOUVENIR_LOG_FILE_RETENTION", "7 days"),
                compression=get_env("SOUVENIR_LOG_COMPRESSION", "zip"),
                serialize=get_env("SOUVENIR_LOG_SERIALIZE", True),
            ),
            enable_extraction=get_env("SOUVENIR_ENABLE_EXTRACTION", True),
        )

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> "Config":
        """
        Load configuration from YAML file.

        Args:
            yaml_path: Path to YAML configuration file

        Returns:
            Config instance

        Raises:
            FileNotFoundError: If YAML file doesn't exist
            yaml.YAMLError: If YAML is invalid
        """
        yaml_path = Path(yaml_path)
        if not yaml_path.exists():
            raise FileNotFoundError(f"Config file not found: {yaml_path}")

        with open(yaml_path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    @classmethod
    def from_env_or_yaml(
        cls, yaml_path: str | Path | None = None, env_file: str | Path | None = None
    ) -> "Config":
        """
        Load configuration with priority: env vars > YAML > defaults.

        Only sections whose environment values differ from the defaults
        override the YAML file.

        Args:
            yaml_path: Optional path to YAML config
            env_file: Optional path to .env file

        Returns:
            Config instance
        """
        if yaml_path and Path(yaml_path).exists():
            with open(yaml_path) as f:
                config_dict = yaml.safe_load(f) or {}
        else:
            config_dict = {}

        env_config = cls.from_env(env_file=env_file)
        default = cls()

        final_dict = {**config_dict}
        for section in (
            "llm",
            "embedder",
            "tokenizer",
            "chunking",
            "processing",
            "retrieval",
            "store",
            "logging",
        ):
            if getattr(env_config, section) != getattr(default, section):
                final_dict[section] = getattr(env_config, section).model_dump()

        if env_config.enable_extraction != default.enable_extraction:
            final_dict["enable_extraction"] = env_config.enable_extraction

        return cls(**final_dict) if final_dict else env_config


# Default config instance
default_config = Config()
