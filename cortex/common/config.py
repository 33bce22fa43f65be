"""
Configuration Management for Cortex

Loads configuration from ~/.cortex/config.json and environment variables.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger("cortex.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".cortex"
CONFIG_PATH = CONFIG_DIR / "config.json"
LOGS_DIR = CONFIG_DIR / "logs"

DEFAULT_EMBEDDING_MODEL = "sentence-transformers/all-MiniLM-L6-v2"
EMBEDDING_DIMENSION = 384


@dataclass
class ClassificationWeights:
    """Ensemble weights and confidence floor for memory classification"""
    semantic_weight: float = 0.5
    structural_weight: float = 0.3
    context_weight: float = 0.2
    minimum_confidence: float = 0.1
    ensemble_enabled: bool = True

    def __post_init__(self):
        for name in ("semantic_weight", "structural_weight", "context_weight"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative, got {getattr(self, name)}")
        if not 0.0 <= self.minimum_confidence <= 1.0:
            raise ValueError(
                f"minimum_confidence must be between 0 and 1, got {self.minimum_confidence}"
            )

    def weight_for(self, strategy_id: str) -> float:
        """Weight of a strategy by its id; unknown strategies carry no weight."""
        return {
            "semantic": self.semantic_weight,
            "structural": self.structural_weight,
            "context": self.context_weight,
        }.get(strategy_id, 0.0)

    def as_dict(self) -> dict:
        return {
            "semantic": self.semantic_weight,
            "structural": self.structural_weight,
            "context": self.context_weight,
        }


@dataclass
class EmbeddingConfig:
    """Embedding model configuration"""
    mode: str = "femb"  # fastembed (on-device)
    model: str = DEFAULT_EMBEDDING_MODEL
    dimension: int = EMBEDDING_DIMENSION
    timeout: float = 30.0


@dataclass
class LLMConfig:
    """Shared LLM provider configuration"""
    provider: str = "anthropic"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    google_api_key: str = ""
    google_model: str = "gemini-2.0-flash-exp"

    @property
    def model(self) -> str:
        """Model name for the configured provider"""
        return {
            "anthropic": self.anthropic_model,
            "openai": self.openai_model,
            "google": self.google_model,
        }.get(self.provider, "")


@dataclass
class StoreConfig:
    """Knowledge store search defaults"""
    default_limit: int = 10
    distance_threshold: Optional[float] = None


@dataclass
class DispatchConfig:
    """Agent dispatch configuration"""
    matcher_timeout: float = 15.0
    matcher_max_attempts: int = 2


@dataclass
class RetryConfig:
    """Exponential backoff for remote calls (seconds)"""
    max_attempts: int = 3
    initial_delay: float = 0.1
    max_delay: float = 2.0
    factor: float = 2.0


@dataclass
class SourcesConfig:
    """Knowledge source locations"""
    vault_path: str = ""


@dataclass
class ChatConfig:
    """Chat session configuration"""
    max_history_size: int = 20


@dataclass
class CortexConfig:
    """Main Cortex configuration"""
    classification: ClassificationWeights = field(default_factory=ClassificationWeights)
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    dispatch: DispatchConfig = field(default_factory=DispatchConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    sources: SourcesConfig = field(default_factory=SourcesConfig)
    chat: ChatConfig = field(default_factory=ChatConfig)
    _env_sourced_keys: set = field(default_factory=set, repr=False)


def _parse_classification_config(data: dict) -> ClassificationWeights:
    """Parse classification section from config dict"""
    section = data.get("classification", {})
    return ClassificationWeights(
        semantic_weight=float(section.get("semantic_weight", 0.5)),
        structural_weight=float(section.get("structural_weight", 0.3)),
        context_weight=float(section.get("context_weight", 0.2)),
        minimum_confidence=float(section.get("minimum_confidence", 0.1)),
        ensemble_enabled=bool(section.get("ensemble_enabled", True)),
    )


def _parse_embedding_config(data: dict) -> EmbeddingConfig:
    """Parse embedding section from config dict"""
    section = data.get("embedding", {})
    return EmbeddingConfig(
        mode=section.get("mode", "femb"),
        model=section.get("model", DEFAULT_EMBEDDING_MODEL),
        dimension=int(section.get("dimension", EMBEDDING_DIMENSION)),
        timeout=float(section.get("timeout", 30.0)),
    )


def _parse_llm_config(data: dict) -> LLMConfig:
    """Parse llm section from config dict"""
    section = data.get("llm", {})
    return LLMConfig(
        provider=section.get("provider", "anthropic"),
        anthropic_api_key=section.get("anthropic_api_key", ""),
        anthropic_model=section.get("anthropic_model", "claude-sonnet-4-20250514"),
        openai_api_key=section.get("openai_api_key", ""),
        openai_model=section.get("openai_model", "gpt-4o-mini"),
        google_api_key=section.get("google_api_key", ""),
        google_model=section.get("google_model", "gemini-2.0-flash-exp"),
    )


def _parse_store_config(data: dict) -> StoreConfig:
    section = data.get("store", {})
    threshold = section.get("distance_threshold")
    return StoreConfig(
        default_limit=int(section.get("default_limit", 10)),
        distance_threshold=float(threshold) if threshold is not None else None,
    )


def _parse_dispatch_config(data: dict) -> DispatchConfig:
    section = data.get("dispatch", {})
    return DispatchConfig(
        matcher_timeout=float(section.get("matcher_timeout", 15.0)),
        matcher_max_attempts=int(section.get("matcher_max_attempts", 2)),
    )


def _parse_retry_config(data: dict) -> RetryConfig:
    section = data.get("retry", {})
    return RetryConfig(
        max_attempts=int(section.get("max_attempts", 3)),
        initial_delay=float(section.get("initial_delay", 0.1)),
        max_delay=float(section.get("max_delay", 2.0)),
        factor=float(section.get("factor", 2.0)),
    )


def load_config() -> CortexConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file (~/.cortex/config.json)
    3. Default values
    """
    config = CortexConfig()

    # Load from config file if exists
    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)

            config.classification = _parse_classification_config(data)
            config.embedding = _parse_embedding_config(data)
            config.llm = _parse_llm_config(data)
            config.store = _parse_store_config(data)
            config.dispatch = _parse_dispatch_config(data)
            config.retry = _parse_retry_config(data)
            config.sources = SourcesConfig(
                vault_path=data.get("sources", {}).get("vault_path", ""),
            )
            config.chat = ChatConfig(
                max_history_size=int(data.get("chat", {}).get("max_history_size", 20)),
            )
        except (json.JSONDecodeError, IOError, ValueError, TypeError) as e:
            logger.warning("Failed to load config file %s: %s", CONFIG_PATH, e)

    # Environment variable overrides
    if os.getenv("CORTEX_VAULT_PATH"):
        config.sources.vault_path = os.getenv("CORTEX_VAULT_PATH")
    if os.getenv("EMBEDDING_MODE"):
        config.embedding.mode = os.getenv("EMBEDDING_MODE")
    if os.getenv("EMBEDDING_MODEL"):
        config.embedding.model = os.getenv("EMBEDDING_MODEL")
    if os.getenv("CORTEX_MIN_CONFIDENCE"):
        config.classification.minimum_confidence = float(os.getenv("CORTEX_MIN_CONFIDENCE"))
    if os.getenv("CORTEX_ENSEMBLE_ENABLED"):
        config.classification.ensemble_enabled = (
            os.getenv("CORTEX_ENSEMBLE_ENABLED").lower() in ("1", "true", "yes")
        )

    # LLM env var overrides (track env-sourced keys)
    _env_llm_map = {
        "ANTHROPIC_API_KEY": "anthropic_api_key",
        "ANTHROPIC_MODEL": "anthropic_model",
        "OPENAI_API_KEY": "openai_api_key",
        "OPENAI_MODEL": "openai_model",
        "GOOGLE_API_KEY": "google_api_key",
        "GEMINI_API_KEY": "google_api_key",
        "GOOGLE_MODEL": "google_model",
        "CORTEX_LLM_PROVIDER": "provider",
    }
    for env_var, attr in _env_llm_map.items():
        val = os.getenv(env_var)
        if val:
            setattr(config.llm, attr, val)
            config._env_sourced_keys.add(attr)

    return config


def save_config(config: CortexConfig) -> None:
    """Save configuration to file.

    API key fields that were sourced from environment variables are written
    as empty strings so that secrets are not persisted to disk.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    env_sourced = getattr(config, "_env_sourced_keys", set())

    llm_section = {
        "provider": config.llm.provider,
        "anthropic_api_key": config.llm.anthropic_api_key,
        "anthropic_model": config.llm.anthropic_model,
        "openai_api_key": config.llm.openai_api_key,
        "openai_model": config.llm.openai_model,
        "google_api_key": config.llm.google_api_key,
        "google_model": config.llm.google_model,
    }
    for key in ("anthropic_api_key", "openai_api_key", "google_api_key"):
        if key in env_sourced:
            llm_section[key] = ""

    data = {
        "classification": {
            "semantic_weight": config.classification.semantic_weight,
            "structural_weight": config.classification.structural_weight,
            "context_weight": config.classification.context_weight,
            "minimum_confidence": config.classification.minimum_confidence,
            "ensemble_enabled": config.classification.ensemble_enabled,
        },
        "embedding": {
            "mode": config.embedding.mode,
            "model": config.embedding.model,
            "dimension": config.embedding.dimension,
            "timeout": config.embedding.timeout,
        },
        "llm": llm_section,
        "store": {
            "default_limit": config.store.default_limit,
            "distance_threshold": config.store.distance_threshold,
        },
        "dispatch": {
            "matcher_timeout": config.dispatch.matcher_timeout,
            "matcher_max_attempts": config.dispatch.matcher_max_attempts,
        },
        "retry": {
            "max_attempts": config.retry.max_attempts,
            "initial_delay": config.retry.initial_delay,
            "max_delay": config.retry.max_delay,
            "factor": config.retry.factor,
        },
        "sources": {"vault_path": config.sources.vault_path},
        "chat": {"max_history_size": config.chat.max_history_size},
    }

    with open(CONFIG_PATH, "w") as f:
        json.dump(data, f, indent=2)

    # Set secure permissions
    CONFIG_PATH.chmod(0o600)


def ensure_directories() -> None:
    """Ensure required directories exist"""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    LOGS_DIR.mkdir(parents=True, exist_ok=True)
