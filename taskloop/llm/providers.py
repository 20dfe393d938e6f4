"""
Provider registry mapping vendor names to configured adapters.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Type

from .claude import ClaudeProvider
from .http_client import HTTPProvider
from .openai import OpenAIProvider


@dataclass(frozen=True)
class ProviderSpec:
    """
    Minimal configuration required to talk to a vendor endpoint.
    """

    name: str
    provider_cls: Type[HTTPProvider]
    api_key_env: str
    default_base_url: str
    base_url_env: Optional[str] = None
    organization_env: Optional[str] = None
    header_env_map: Optional[Dict[str, str]] = None  # header -> env var
    default_headers: Optional[Dict[str, str]] = None
    default_model: Optional[str] = None

    def resolve_base_url(self, explicit: Optional[str] = None) -> str:
        env_value = os.getenv(self.base_url_env) if self.base_url_env else None
        return (explicit or env_value or self.default_base_url).rstrip("/")

    def resolve_headers(self, explicit: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers: Dict[str, str] = dict(self.default_headers or {})
        if self.header_env_map:
            for header_name, env_var in self.header_env_map.items():
                value = os.getenv(env_var)
                if value:
                    headers[header_name] = value
        if explicit:
            headers.update(explicit)
        return headers

    def resolve_organization(self, explicit: Optional[str] = None) -> Optional[str]:
        if explicit is not None:
            return explicit
        if self.organization_env:
            return os.getenv(self.organization_env)
        return None


_ANTHROPIC = ProviderSpec(
    name="anthropic",
    provider_cls=ClaudeProvider,
    api_key_env="ANTHROPIC_API_KEY",
    default_base_url="https://api.anthropic.com/v1",
    base_url_env="ANTHROPIC_BASE_URL",
)

_PROVIDER_REGISTRY: Dict[str, ProviderSpec] = {
    "anthropic": _ANTHROPIC,
    "claude": _ANTHROPIC,
    "openai": ProviderSpec(
        name="openai",
        provider_cls=OpenAIProvider,
        api_key_env="OPENAI_API_KEY",
        default_base_url="https://api.openai.com/v1",
        base_url_env="OPENAI_BASE_URL",
        organization_env="OPENAI_ORG_ID",
    ),
    "deepseek": ProviderSpec(
        name="deepseek",
        provider_cls=OpenAIProvider,
        api_key_env="DEEPSEEK_API_KEY",
        default_base_url="https://api.deepseek.com/v1",
        base_url_env="DEEPSEEK_BASE_URL",
        default_model="deepseek-chat",
    ),
    "qwen": ProviderSpec(
        name="qwen",
        provider_cls=OpenAIProvider,
        api_key_env="QWEN_API_KEY",
        default_base_url="https://dashscope.aliyuncs.com/compatible-mode/v1",
        base_url_env="QWEN_BASE_URL",
        header_env_map={"X-DashScope-Workspace": "QWEN_WORKSPACE"},
        default_model="qwen-plus",
    ),
}


def register_provider(spec: ProviderSpec) -> None:
    """
    Allow users to register additional providers at runtime.
    """

    _PROVIDER_REGISTRY[spec.name] = spec


def list_providers() -> Iterable[str]:
    return tuple(_PROVIDER_REGISTRY.keys())


def create_provider(
    provider: str,
    model: Optional[str] = None,
    *,
    api_key: Optional[str] = None,
    base_url: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
    organization: Optional[str] = None,
    timeout: float = 60.0,
    temperature: Optional[float] = None,
    max_output_tokens: Optional[int] = None,
) -> HTTPProvider:
    """
    Instantiate the adapter for a registered provider.
    """

    try:
        spec = _PROVIDER_REGISTRY[provider]
    except KeyError as exc:
        raise ValueError(f"Unknown provider '{provider}'. Available: {list_providers()}") from exc

    resolved_headers = spec.resolve_headers(headers)
    kwargs = dict(
        api_key_env=spec.api_key_env,
        api_key=api_key,
        base_url=spec.resolve_base_url(base_url),
        timeout=timeout,
        default_headers=resolved_headers or None,
        temperature=temperature,
        max_output_tokens=max_output_tokens,
    )
    if issubclass(spec.provider_cls, OpenAIProvider):
        kwargs["organization"] = spec.resolve_organization(organization)
    return spec.provider_cls(model or spec.default_model, **kwargs)
