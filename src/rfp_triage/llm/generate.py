"""LLM generation supporting multiple providers, plus a schema-aware wrapper."""

import asyncio
import json
from typing import Any, Callable, Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from rfp_triage.config.settings import settings
from rfp_triage.core.circuit_breaker import CircuitBreaker
from rfp_triage.core.logging import get_logger

from .errors import (
    GenerationError,
    MalformedOutputError,
    ProviderError,
    ProviderUnavailableError,
)

logger = get_logger(__name__)

OutputT = TypeVar("OutputT", bound=BaseModel)

DEFAULT_MODELS = {
    "ollama": "llama3.2",
    "anthropic": "claude-3-5-haiku-20241022",
    "openai": "gpt-4o-mini",
    "gemini": "gemini-1.5-flash",
}

SYSTEM_PROMPT = (
    "You are an RFP analyst. Answer with a single JSON object and nothing else."
)


def generate_with_llm(
    prompt: str,
    provider: str = "ollama",
    api_key: Optional[str] = None,
    system_prompt: Optional[str] = None,
    temperature: float = 0.1,
    max_tokens: int = 1024,
    model: Optional[str] = None,
    base_url: Optional[str] = None,
    timeout_s: int = 120,
) -> str:
    """Generate text using specified LLM provider.

    Args:
        prompt: Fully bound prompt
        provider: 'ollama', 'anthropic', 'openai', or 'gemini'
        api_key: API key for cloud providers (required for non-Ollama)
        system_prompt: System instruction
        temperature: Sampling temperature (0-1)
        max_tokens: Max response length
        model: Model name; provider default when omitted
        base_url: Ollama server address
        timeout_s: HTTP timeout for the Ollama request

    Returns:
        Raw text response
    """
    provider = provider.lower().strip()
    if provider not in DEFAULT_MODELS:
        raise ValueError(f"Unknown provider: {provider}")
    model = model or DEFAULT_MODELS[provider]

    if provider == "ollama":
        return _generate_ollama(
            prompt, system_prompt, temperature, max_tokens, model,
            base_url or settings.models.ollama_url, timeout_s,
        )
    elif provider == "anthropic":
        return _generate_anthropic(
            prompt, api_key, system_prompt, temperature, max_tokens, model
        )
    elif provider == "openai":
        return _generate_openai(
            prompt, api_key, system_prompt, temperature, max_tokens, model
        )
    return _generate_gemini(prompt, api_key, system_prompt, temperature, max_tokens, model)


def _generate_ollama(
    prompt: str,
    system_prompt: Optional[str],
    temperature: float,
    max_tokens: int,
    model: str,
    base_url: str,
    timeout_s: int,
) -> str:
    """Generate using local Ollama."""
    import requests

    full_prompt = f"{system_prompt}\n\n{prompt}" if system_prompt else prompt

    try:
        response = requests.post(
            f"{base_url.rstrip('/')}/api/generate",
            json={
                "model": model,
                "prompt": full_prompt,
                "format": "json",
                "stream": False,
                "options": {"temperature": temperature, "num_predict": max_tokens},
            },
            timeout=timeout_s,
        )
        response.raise_for_status()
        return response.json()["response"].strip()
    except requests.exceptions.ConnectionError as exc:
        raise ProviderUnavailableError(
            f"Ollama not reachable at {base_url}. Start with: ollama serve"
        ) from exc
    except requests.exceptions.RequestException as exc:
        raise ProviderError(f"Ollama request failed: {exc}") from exc
    except (KeyError, ValueError) as exc:
        raise ProviderError(f"Unexpected Ollama response: {exc}") from exc


def _generate_anthropic(
    prompt: str,
    api_key: Optional[str],
    system_prompt: Optional[str],
    temperature: float,
    max_tokens: int,
    model: str,
) -> str:
    """Generate using Anthropic Claude."""
    if not api_key:
        raise ProviderUnavailableError("ANTHROPIC_API_KEY required")

    try:
        import anthropic
    except ImportError as exc:
        raise ProviderUnavailableError("Install anthropic: pip install rfp-triage[anthropic]") from exc

    client = anthropic.Anthropic(api_key=api_key)
    try:
        response = client.messages.create(
            model=model,
            max_tokens=max_tokens,
            temperature=temperature,
            system=system_prompt or "",
            messages=[{"role": "user", "content": prompt}],
        )
    except anthropic.APIConnectionError as exc:
        raise ProviderUnavailableError(f"Anthropic unreachable: {exc}") from exc
    except anthropic.APIError as exc:
        raise ProviderError(f"Anthropic error: {exc}") from exc
    return response.content[0].text.strip()


def _generate_openai(
    prompt: str,
    api_key: Optional[str],
    system_prompt: Optional[str],
    temperature: float,
    max_tokens: int,
    model: str,
) -> str:
    """Generate using OpenAI GPT."""
    if not api_key:
        raise ProviderUnavailableError("OPENAI_API_KEY required")

    try:
        import openai
    except ImportError as exc:
        raise ProviderUnavailableError("Install openai: pip install rfp-triage[openai]") from exc

    client = openai.OpenAI(api_key=api_key)
    messages = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": prompt})

    try:
        response = client.chat.completions.create(
            model=model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            response_format={"type": "json_object"},
        )
    except openai.APIConnectionError as exc:
        raise ProviderUnavailableError(f"OpenAI unreachable: {exc}") from exc
    except openai.APIError as exc:
        raise ProviderError(f"OpenAI error: {exc}") from exc
    return (response.choices[0].message.content or "").strip()


def _generate_gemini(
    prompt: str,
    api_key: Optional[str],
    system_prompt: Optional[str],
    temperature: float,
    max_tokens: int,
    model: str,
) -> str:
    """Generate using Google Gemini."""
    if not api_key:
        raise ProviderUnavailableError("GEMINI_API_KEY required")

    try:
        import google.generativeai as genai
    except ImportError as exc:
        raise ProviderUnavailableError(
            "Install google-generativeai: pip install rfp-triage[gemini]"
        ) from exc

    genai.configure(api_key=api_key)
    client = genai.GenerativeModel(model)

    full_prompt = f"{system_prompt}\n\n{prompt}" if system_prompt else prompt
    response = client.generate_content(
        full_prompt,
        generation_config={
            "temperature": temperature,
            "max_output_tokens": max_tokens,
            "response_mime_type": "application/json",
        },
    )
    return response.text.strip()


def extract_json_object(text: str) -> str:
    """Return the first balanced ``{...}`` in ``text``, or '' if there is none.

    Braces inside JSON strings are ignored, so prose around the object (or a
    markdown code fence) does not matter.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            char = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
            elif char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start : i + 1]
        # Unbalanced from here on; try the next opening brace.
        start = text.find("{", start + 1)
    return ""


def parse_structured_output(raw: str, output_schema: Type[OutputT]) -> OutputT:
    """Parse a model answer into ``output_schema`` or raise MalformedOutputError."""
    blob = extract_json_object(raw or "")
    if not blob:
        raise MalformedOutputError("no JSON object in model output", raw)
    try:
        data = json.loads(blob)
    except json.JSONDecodeError as exc:
        raise MalformedOutputError(f"invalid JSON in model output: {exc}", raw) from exc
    try:
        return output_schema.model_validate(data)
    except ValidationError as exc:
        raise MalformedOutputError(
            f"model output does not match {output_schema.__name__}: "
            f"{exc.error_count()} validation error(s)",
            raw,
        ) from exc


def bind_prompt(prompt_template: str, request: BaseModel) -> str:
    """Fill ``{placeholders}`` from the request's fields and prompt context."""
    variables = request.model_dump()
    prompt_context = getattr(request, "prompt_context", None)
    if callable(prompt_context):
        variables.update(prompt_context())
    try:
        return prompt_template.format(**variables)
    except KeyError as exc:
        raise ValueError(f"prompt template references unknown variable {exc}") from exc


CompletionFn = Callable[[str], str]


class StructuredGenerator:
    """Prompt + schema in, validated pydantic model out.

    Blocking provider calls run in a worker thread, so an enclosing guarded
    call can time out while the HTTP request is still in flight.
    """

    def __init__(
        self,
        provider: str = "ollama",
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: int = 1024,
        system_prompt: Optional[str] = SYSTEM_PROMPT,
        breaker: Optional[CircuitBreaker] = None,
        completion_fn: Optional[CompletionFn] = None,
    ) -> None:
        self.provider = provider.lower().strip()
        if completion_fn is None and self.provider not in DEFAULT_MODELS:
            raise ValueError(f"Unknown provider: {provider}")
        self.model = model or DEFAULT_MODELS.get(self.provider, "")
        self.api_key = api_key
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.system_prompt = system_prompt
        self.breaker = breaker or CircuitBreaker(
            failure_threshold=settings.breaker.failure_threshold,
            recovery_timeout=settings.breaker.recovery_timeout,
        )
        self._completion_fn = completion_fn

    @classmethod
    def from_settings(cls) -> "StructuredGenerator":
        return cls(
            provider=settings.models.provider,
            api_key=settings.api_key_for(settings.models.provider) or None,
            model=settings.models.model or None,
            temperature=settings.models.temperature,
            max_tokens=settings.models.max_tokens,
        )

    def _complete(self, prompt: str) -> str:
        if self._completion_fn is not None:
            return self._completion_fn(prompt)
        return generate_with_llm(
            prompt,
            provider=self.provider,
            api_key=self.api_key,
            system_prompt=self.system_prompt,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            model=self.model,
            timeout_s=settings.models.request_timeout_s,
        )

    async def invoke(
        self,
        prompt_template: str,
        variables: Union[BaseModel, Mapping[str, Any]],
        input_schema: Type[BaseModel],
        output_schema: Type[OutputT],
    ) -> OutputT:
        request = (
            variables
            if isinstance(variables, input_schema)
            else input_schema.model_validate(variables)
        )
        prompt = bind_prompt(prompt_template, request)

        if not self.breaker.allow():
            raise ProviderUnavailableError(
                f"circuit open for provider {self.provider}, retry in "
                f"{self.breaker.seconds_until_retry():.0f}s"
            )

        try:
            raw = await asyncio.to_thread(self._complete, prompt)
        except GenerationError as exc:
            self.breaker.record_failure()
            logger.warning(
                f"Generation failed: {exc}",
                extra={"provider": self.provider, "error_type": type(exc).__name__},
            )
            raise
        except Exception as exc:
            self.breaker.record_failure()
            logger.warning(
                f"Generation failed: {exc}",
                extra={"provider": self.provider, "error_type": type(exc).__name__},
            )
            raise ProviderError(f"{self.provider} call failed: {exc}") from exc

        self.breaker.record_success()
        try:
            return parse_structured_output(raw, output_schema)
        except MalformedOutputError:
            logger.warning(
                "Model output did not match schema",
                extra={"provider": self.provider, "error_type": "MalformedOutputError"},
            )
            raise
