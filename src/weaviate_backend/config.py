"""Configuration management for the Weaviate plugin using Hydra.

Configuration is loaded from YAML files in conf/weaviate/ and validated into
typed pydantic objects. Defaults are applied here, not at call sites.
"""

from pathlib import Path
from typing import Any

from hydra import compose, initialize_config_dir
from omegaconf import DictConfig, OmegaConf
from pydantic import BaseModel, ConfigDict, Field

from weaviate_backend.chunking import ChunkingConfig
from weaviate_backend.embedding import EmbeddingConfig
from weaviate_backend.models import CollectionConfig, PropertyConfig

__all__ = [
    "ClientParams",
    "CollectionConfig",
    "CollectionParams",
    "PluginParams",
    "PropertyConfig",
    "create_default_config",
    "load_config",
]


class ClientParams(BaseModel):
    """Connection parameters for the Weaviate client.

    Cloud mode is selected when `api_key` is set; local mode otherwise.

    Attributes:
        host: Hostname without protocol ("localhost", "my-cluster.weaviate.network")
        port: HTTP port for local mode (default 8080)
        grpc_port: gRPC port for local mode (default 50051)
        secure: Use TLS for both HTTP and gRPC in local mode
        api_key: Weaviate API key
        headers: Extra headers sent with every request (e.g. provider keys)
        timeout: Connection establishment timeout in seconds
    """

    host: str = Field(min_length=1)
    port: int = Field(default=8080, ge=1, le=65535)
    grpc_port: int = Field(default=50051, ge=1, le=65535)
    secure: bool = False
    api_key: str | None = None
    headers: dict[str, str] | None = None
    timeout: float | None = Field(default=None, gt=0)


class CollectionParams(BaseModel):
    """Plugin configuration for one collection.

    Attributes:
        collection_name: Weaviate collection name
        embedder: Model identifier (e.g. "openai/text-embedding-3-small") or an
            object implementing the `Embedder` protocol. Required.
        embedder_options: Options passed to every embed call
        create_collection_if_missing: Default for the indexer option of the same name
        collection_config: Default description/properties used when provisioning
        display_name: Label shown for the collection's actions
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    collection_name: str = Field(min_length=1)
    embedder: Any = None
    embedder_options: dict[str, Any] | None = None
    create_collection_if_missing: bool = True
    collection_config: CollectionConfig | None = None
    display_name: str | None = None


class PluginParams(BaseModel):
    """Top-level plugin configuration.

    Attributes:
        client_params: Weaviate connection parameters
        collections: Collections to register
        embedding: Settings for embedders resolved from model identifiers
        chunking: Chunking applied by embedders resolved from model identifiers
    """

    client_params: ClientParams
    collections: list[CollectionParams] = Field(default_factory=list)
    embedding: EmbeddingConfig | None = None
    chunking: ChunkingConfig | None = None


def load_config(
    config_name: str = "default",
    config_path: str | Path | None = None,
    overrides: list[str] | None = None,
) -> PluginParams:
    """Load plugin configuration from Hydra YAML files.

    Args:
        config_name: Name of config file (without .yaml extension)
        config_path: Path to config directory (defaults to conf/weaviate/)
        overrides: List of config overrides (e.g., ["client_params.port=8081"])

    Returns:
        Validated configuration object

    Example:
        >>> params = load_config("default", overrides=["client_params.host=weaviate"])
        >>> params.client_params.host
        'weaviate'
    """
    if config_path is None:
        repo_root = Path(__file__).parent.parent.parent
        config_path = repo_root / "conf" / "weaviate"

    config_path = Path(config_path).resolve()

    if not config_path.exists():
        raise FileNotFoundError(
            f"Config directory not found: {config_path}\n" f"Create it with: mkdir -p {config_path}"
        )

    with initialize_config_dir(config_dir=str(config_path), version_base=None, job_name="weaviate"):
        cfg: DictConfig = compose(config_name=config_name, overrides=overrides or [])

    config_dict = OmegaConf.to_container(cfg, resolve=True)
    return PluginParams(**config_dict)  # type: ignore


def create_default_config() -> dict[str, Any]:
    """Create a default configuration dictionary for bootstrapping.

    Returns:
        Dictionary suitable for writing to YAML
    """
    return {
        "client_params": {
            "host": "${oc.env:WEAVIATE_HOST,localhost}",
            "port": 8080,
            "grpc_port": 50051,
            "secure": False,
            "api_key": "${oc.env:WEAVIATE_API_KEY,null}",
            "headers": None,
            "timeout": 30.0,
        },
        "collections": [
            {
                "collection_name": "Documents",
                "embedder": "openai/text-embedding-3-small",
                "embedder_options": None,
                "create_collection_if_missing": True,
                "collection_config": None,
            }
        ],
        "embedding": {
            "model": "openai/text-embedding-3-small",
            "dimensions": None,
            "batch_size": 100,
            "max_retries": 3,
            "timeout_seconds": 30.0,
            "api_key": "${oc.env:OPENAI_API_KEY,null}",
        },
        "chunking": None,
    }
