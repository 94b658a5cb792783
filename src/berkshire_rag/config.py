"""Configuration management using Pydantic."""
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Optional, Dict, Any
from pathlib import Path
import logging
import os
import yaml
from dotenv import load_dotenv


class EmbedderConfig(BaseModel):
    """Configuration for embedder models."""
    name: str = Field("text-embedding-3-small", description="Name or path of the embedding model")
    type: str = Field("openai", description="Type of embedder (huggingface or openai)")
    embedding_size: int = Field(1536, gt=0, description="Size of output embeddings")
    max_length: int = Field(8000, gt=0, description="Maximum input length in characters")
    api_key: Optional[str] = Field(None, description="Optional API key for cloud services")
    additional_params: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Additional model parameters"
    )


class ChunkingConfig(BaseModel):
    """Configuration for document chunking."""
    chunk_size: int = Field(1000, gt=0, description="Maximum characters per chunk")
    overlap: int = Field(200, ge=0, description="Characters shared by consecutive chunks")

    @model_validator(mode="after")
    def _check_overlap(self) -> "ChunkingConfig":
        if self.overlap >= self.chunk_size:
            raise ValueError(
                f"overlap ({self.overlap}) must be smaller than chunk_size ({self.chunk_size})"
            )
        return self


class StoreConfig(BaseModel):
    """Configuration for the record store."""
    database_url: str = Field(
        "postgresql+asyncpg://localhost:5432/berkshire_rag",
        description="SQLAlchemy async database URL"
    )
    table_name: str = Field("berkshire_documents", description="Table holding chunk records")
    embedding_dimension: int = Field(1536, gt=0, description="Dimension of every stored embedding")
    source: str = Field("berkshire_hathaway_letters", description="Value of the source column")
    ivfflat_lists: int = Field(100, gt=0, description="Number of lists for the ivfflat index")
    ivfflat_probes: int = Field(10, gt=0, description="Lists scanned per indexed search")
    force_scalar: bool = Field(False, description="Skip the pgvector probe and store JSON arrays")
    pool_size: int = Field(5, gt=0, description="Connection pool size")
    echo_sql: bool = Field(False, description="Log emitted SQL")


class SearchConfig(BaseModel):
    """Defaults applied by the search facade."""
    default_limit: int = Field(5, gt=0, description="Number of hits returned when no limit is given")
    min_similarity: Optional[float] = Field(
        None, ge=-1.0, le=1.0,
        description="Similarity threshold applied when a request sets none"
    )


class LoggingConfig(BaseModel):
    """Logging setup."""
    level: str = Field("INFO", description="Root log level")
    log_file: Optional[Path] = Field(None, description="Optional file receiving a copy of the log")

    @field_validator("level")
    @classmethod
    def _check_level(cls, value: str) -> str:
        value = value.upper()
        if not isinstance(logging.getLevelName(value), int):
            raise ValueError(f"Unknown log level: {value}")
        return value


class Config(BaseModel):
    """Main configuration for the retrieval core."""
    embedder: EmbedderConfig = Field(default_factory=EmbedderConfig)
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    data_dir: Path = Field(
        default=Path("Data"),
        description="Directory holding the source documents"
    )
    batch_size: int = Field(100, gt=0, description="Records written per store transaction")

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @model_validator(mode="after")
    def _check_dimensions(self) -> "Config":
        # Every stored vector comes from the configured embedder.
        if self.store.embedding_dimension != self.embedder.embedding_size:
            raise ValueError(
                f"store.embedding_dimension ({self.store.embedding_dimension}) does not match "
                f"embedder.embedding_size ({self.embedder.embedding_size})"
            )
        return self


def _apply_env_overrides(config_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Overlay DATABASE_URL and OPENAI_API_KEY from the environment."""
    database_url = os.getenv("DATABASE_URL")
    if database_url:
        config_dict.setdefault("store", {})["database_url"] = database_url

    api_key = os.getenv("OPENAI_API_KEY")
    if api_key:
        embedder = config_dict.setdefault("embedder", {})
        if not embedder.get("api_key"):
            embedder["api_key"] = api_key
    return config_dict


def load_config(config_path: Optional[str] = "config.yaml") -> Config:
    """Load configuration from a YAML file and the environment.

    A ``.env`` file in the working directory is read first. DATABASE_URL
    always wins over the file; OPENAI_API_KEY is used when the file sets no
    key.

    Args:
        config_path: Path to config file, or None to use defaults only

    Returns:
        Config: Configuration object

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config is invalid
    """
    load_dotenv()

    config_dict: Dict[str, Any] = {}
    if config_path is not None:
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            config_dict = yaml.safe_load(f) or {}

    return Config(**_apply_env_overrides(config_dict))


def configure_logging(config: LoggingConfig) -> None:
    """Configure root logging the same way for every entry point."""
    handlers = [logging.StreamHandler()]
    if config.log_file is not None:
        config.log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(config.log_file))

    logging.basicConfig(
        level=config.level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True,
    )
