"""Configuration settings for the application."""
import os
from dataclasses import dataclass
from typing import Dict

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, default))


@dataclass
class ModelSettings:
    provider: str = os.getenv("LLM_PROVIDER", "ollama")
    model: str = os.getenv("LLM_MODEL", "")
    ollama_url: str = os.getenv("OLLAMA_URL", "http://127.0.0.1:11434")
    temperature: float = float(os.getenv("LLM_TEMPERATURE", 0.1))
    max_tokens: int = _env_int("LLM_MAX_TOKENS", 1024)
    # Per-request HTTP timeout for the provider; guarded flows cut off sooner.
    request_timeout_s: int = _env_int("LLM_REQUEST_TIMEOUT_S", 120)


@dataclass
class BreakerSettings:
    failure_threshold: int = _env_int("BREAKER_FAILURE_THRESHOLD", 5)
    recovery_timeout: float = float(os.getenv("BREAKER_RECOVERY_TIMEOUT", 60))


@dataclass
class FlowTimeouts:
    """Latency budget per flow, scaled to how much the model has to do."""

    legal_risks_ms: int = _env_int("LEGAL_RISKS_TIMEOUT_MS", 5000)
    pricing_ms: int = _env_int("PRICING_TIMEOUT_MS", 4000)
    compliance_matrix_ms: int = _env_int("COMPLIANCE_MATRIX_TIMEOUT_MS", 8000)
    summary_ms: int = _env_int("SUMMARY_TIMEOUT_MS", 10000)

    def as_dict(self) -> Dict[str, int]:
        return {
            "legal_risks": self.legal_risks_ms,
            "pricing": self.pricing_ms,
            "compliance_matrix": self.compliance_matrix_ms,
            "summary": self.summary_ms,
        }


class Settings:
    models = ModelSettings()
    breaker = BreakerSettings()
    timeouts = FlowTimeouts()
    fetch_timeout_s: int = _env_int("FETCH_TIMEOUT_S", 10)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # API Keys
    anthropic_api_key: str = os.getenv("ANTHROPIC_API_KEY", "")
    openai_api_key: str = os.getenv("OPENAI_API_KEY", "")
    gemini_api_key: str = os.getenv("GEMINI_API_KEY", "")

    def api_key_for(self, provider: str) -> str:
        return {
            "anthropic": self.anthropic_api_key,
            "openai": self.openai_api_key,
            "gemini": self.gemini_api_key,
        }.get(provider.lower().strip(), "")


settings = Settings()
