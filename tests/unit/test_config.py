"""Unit tests for Settings, RagConfig validation and the YAML loader."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
import structlog
from pydantic import ValidationError

from ragpipe.config.loader import load_config, load_settings
from ragpipe.config.rag_config import RagConfig
from ragpipe.config.settings import Settings
from ragpipe.models.rag import ChunkingStrategy
from ragpipe.utils.logging import configure_logging, get_logger


class TestRagConfig:
    def test_defaults(self) -> None:
        config = RagConfig()
        assert config.chunking_strategy is ChunkingStrategy.PARAGRAPH
        assert config.chunk_size == 1000
        assert config.chunk_overlap == 200
        assert config.retrieval_top_k == 5
        assert config.similarity_threshold == 0.7
        assert config.max_context_tokens == 4000
        assert config.citation_format == "numbered"
        assert config.vector_store == "memory"

    def test_overlap_must_be_below_size(self) -> None:
        with pytest.raises(ValidationError):
            RagConfig(chunk_size=100, chunk_overlap=150)

    def test_vector_and_embedding_dimensions_must_match(self) -> None:
        with pytest.raises(ValidationError):
            RagConfig(embedding_dimension=384, vector_dimension=1536)

    def test_threshold_range(self) -> None:
        with pytest.raises(ValidationError):
            RagConfig(similarity_threshold=1.2)

    def test_chunking_options_view(self) -> None:
        options = RagConfig(chunk_size=400, chunk_overlap=50, min_chunk_size=10).chunking_options()
        assert (options.chunk_size, options.chunk_overlap, options.min_chunk_size) == (400, 50, 10)


class TestSettings:
    def test_prefixed_environment_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RAGPIPE_CHUNK_SIZE", "800")
        monkeypatch.setenv("RAGPIPE_CHUNKING_STRATEGY", "sentence")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")

        settings = Settings(_env_file=None)

        assert settings.chunk_size == 800
        assert settings.chunking_strategy is ChunkingStrategy.SENTENCE
        assert settings.openai_api_key == "sk-env"

    def test_vector_store_credentials_use_conventional_names(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("PINECONE_API_KEY", "pc-env")
        monkeypatch.setenv("WEAVIATE_URL", "http://weaviate:8080")
        monkeypatch.setenv("RAGPIPE_PINECONE_NAMESPACE", "team-a")

        settings = Settings(_env_file=None)

        assert settings.pinecone_api_key == "pc-env"
        assert settings.pinecone_namespace == "team-a"
        assert settings.weaviate_url == "http://weaviate:8080"
        assert settings.weaviate_collection == "RagpipeChunks"

    def test_vector_dimension_defaults_to_embedding_dimension(self) -> None:
        config = Settings(_env_file=None, embedding_dimension=384).to_rag_config()
        assert config.vector_dimension == 384

    def test_inconsistent_settings_fail_on_conversion(self) -> None:
        settings = Settings(_env_file=None, chunk_size=100, chunk_overlap=100)
        with pytest.raises(ValidationError):
            settings.to_rag_config()


class TestLoader:
    @pytest.fixture(autouse=True)
    def _clean_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for name in ("RAGPIPE_CHUNK_SIZE", "RAGPIPE_CHUNKING_STRATEGY", "RAGPIPE_RETRIEVAL_TOP_K"):
            monkeypatch.delenv(name, raising=False)

    def _write(self, tmp_path: Path) -> Path:
        path = tmp_path / "config.yaml"
        path.write_text(
            "chunking:\n"
            "  chunking_strategy: sentence\n"
            "  chunk_size: 500\n"
            "  chunk_overlap: 50\n"
            "retrieval:\n"
            "  retrieval_top_k: 8\n",
            encoding="utf-8",
        )
        return path

    def test_sections_are_flattened(self, tmp_path: Path) -> None:
        resolved = load_config(str(self._write(tmp_path)))
        assert resolved["chunk_size"] == 500
        assert resolved["retrieval_top_k"] == 8

    def test_environment_wins_over_yaml(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("RAGPIPE_RETRIEVAL_TOP_K", "3")

        settings = load_settings(str(self._write(tmp_path)))

        assert settings.retrieval_top_k == 3
        assert settings.chunk_size == 500
        assert settings.chunking_strategy is ChunkingStrategy.SENTENCE

    def test_missing_file_uses_defaults(self, tmp_path: Path) -> None:
        settings = load_settings(str(tmp_path / "absent.yaml"))
        assert settings.chunk_size == 1000

    def test_repository_config_is_valid(self) -> None:
        path = Path(__file__).resolve().parents[2] / "config" / "config.yaml"
        settings = load_settings(str(path))
        assert settings.to_rag_config().vector_store == "memory"


class TestLogging:
    def test_configure_and_get_logger(self) -> None:
        configure_logging(log_level="DEBUG", json_output=True)
        logger = get_logger("ragpipe.test")
        assert structlog.is_configured()
        logger.info("logging_configured", test=True)
        structlog.reset_defaults()

    def test_library_loggers_quieted_unless_debug(self) -> None:
        configure_logging(log_level="INFO")
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("qdrant_client").level == logging.WARNING
        configure_logging(log_level="DEBUG")
        assert logging.getLogger("httpx").level == logging.DEBUG
        structlog.reset_defaults()
