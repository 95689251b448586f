"""Configuration module: Settings, RagConfig and the YAML loader."""

from ragpipe.config.loader import load_config, load_settings
from ragpipe.config.rag_config import ChunkingOptions, RagConfig
from ragpipe.config.settings import Settings

__all__ = ["ChunkingOptions", "RagConfig", "Settings", "load_config", "load_settings"]
