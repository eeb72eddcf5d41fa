"""Configuration management for Repo Indexer."""

import json
import logging
from pathlib import Path
from typing import List, Optional, Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

logger = logging.getLogger(__name__)


class OllamaConfig(BaseModel):
    """Configuration for the Ollama embedding service."""

    host: str = Field(default="http://127.0.0.1:11434", description="Ollama API host")
    model: str = Field(
        default="nomic-embed-text:v1.5", description="Embedding model name"
    )
    timeout: int = Field(default=120, description="Request timeout in seconds")
    max_input_length: int = Field(
        default=4096,
        description="Texts longer than this many characters are truncated before embedding",
    )

    # Retry configuration for transient failures
    max_retries: int = Field(
        default=3, description="Maximum number of retries for failed requests"
    )
    retry_delay: float = Field(
        default=2.0, description="Initial delay between retries in seconds"
    )


class QdrantConfig(BaseModel):
    """Configuration for Qdrant vector database."""

    host: str = Field(default="http://127.0.0.1:6333", description="Qdrant API host")
    collection_name: str = Field(
        default="codecompass", description="Collection holding the repository index"
    )
    vector_size: int = Field(
        default=768,
        description="Vector dimension size, must match the embedding model",
    )
    timeout: float = Field(default=30.0, description="Request timeout in seconds")
    scroll_limit: int = Field(
        default=250, description="Points fetched per scroll page during the stale sweep"
    )


class IndexingConfig(BaseModel):
    """Configuration for indexing behavior."""

    chunk_size: int = Field(default=1500, description="Text chunk size in characters")
    chunk_overlap: int = Field(default=150, description="Overlap between chunks")
    file_extensions: List[str] = Field(
        default=[
            ".ts",
            ".js",
            ".tsx",
            ".jsx",
            ".json",
            ".md",
            ".html",
            ".css",
            ".scss",
            ".py",
            ".java",
            ".c",
            ".cpp",
            ".go",
            ".rs",
            ".php",
            ".rb",
        ],
        description="File extensions to index",
    )
    exclude_dirs: List[str] = Field(
        default=["node_modules", "dist"],
        description="Directories to exclude from indexing, at any depth",
    )
    max_workers: int = Field(
        default=1,
        description="Files embedded and written concurrently (1 = sequential)",
    )
    point_id_strategy: Literal["random", "deterministic"] = Field(
        default="random",
        description=(
            "'random' writes a fresh uuid4 per point; 'deterministic' derives "
            "the id from filepath and chunk index so re-indexing overwrites"
        ),
    )

    @field_validator("file_extensions")
    @classmethod
    def normalize_extensions(cls, v: List[str]) -> List[str]:
        """Lower-case extensions and give them a leading dot."""
        return ["." + ext.lstrip(".").lower() for ext in v if ext.strip(".")]

    @field_validator("max_workers")
    @classmethod
    def validate_max_workers(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_workers must be at least 1")
        return v

    @model_validator(mode="after")
    def validate_chunking(self) -> "IndexingConfig":
        # The chunker never advances unless overlap < size.
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if not 0 <= self.chunk_overlap < self.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must be >= 0 and smaller "
                f"than chunk_size ({self.chunk_size})"
            )
        return self


class Config(BaseModel):
    """Main configuration for Repo Indexer."""

    repository_dir: Path = Field(
        default=Path("."), description="Git working copy to index"
    )
    ollama: OllamaConfig = Field(default_factory=OllamaConfig)
    qdrant: QdrantConfig = Field(default_factory=QdrantConfig)
    indexing: IndexingConfig = Field(default_factory=IndexingConfig)

    @field_validator("repository_dir", mode="before")
    @classmethod
    def convert_path(cls, v: Any) -> Path:
        """Convert string paths to Path objects."""
        if isinstance(v, str):
            return Path(v)
        if isinstance(v, Path):
            return v
        raise ValueError(f"Expected str or Path, got {type(v)}")


class ConfigManager:
    """Manages configuration loading and saving."""

    DEFAULT_CONFIG_PATH = Path(".repo-indexer/config.json")

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = config_path or self.DEFAULT_CONFIG_PATH
        self._config: Optional[Config] = None

    def load(self) -> Config:
        """Load configuration from file or create default."""
        if self.config_path.exists():
            try:
                with open(self.config_path, "r") as f:
                    data = json.load(f)

                if "repository_dir" in data:
                    data["repository_dir"] = str(
                        self._resolve_relative_path(data["repository_dir"])
                    )

                self._config = Config(**data)
            except Exception as e:
                raise ValueError(f"Failed to load config from {self.config_path}: {e}")
        else:
            logger.debug(f"No config at {self.config_path}, using defaults")
            self._config = Config()

        return self._config

    def save(self, config: Optional[Config] = None) -> None:
        """Save configuration to file, storing the repository path relative to it."""
        if config is None:
            config = self._config

        if config is None:
            raise ValueError("No configuration to save")

        self.config_path.parent.mkdir(parents=True, exist_ok=True)

        config_dict = config.model_dump(mode="json")
        config_dict["repository_dir"] = self._make_relative_to_config(
            config.repository_dir
        )

        with open(self.config_path, "w") as f:
            json.dump(config_dict, f, indent=2)
        self._config = config

    def get_config(self) -> Config:
        """Get current configuration, loading it if needed."""
        if self._config is None:
            return self.load()
        return self._config

    def _make_relative_to_config(self, path: Path) -> str:
        """Express path relative to the directory holding the config directory."""
        base_dir = self.config_path.resolve().parent.parent
        try:
            return str(path.resolve().relative_to(base_dir))
        except ValueError:
            # Outside the project tree, keep it absolute
            return str(path.resolve())

    def _resolve_relative_path(self, path_str: str) -> Path:
        path = Path(path_str)
        if path.is_absolute():
            return path
        return (self.config_path.resolve().parent.parent / path).resolve()
