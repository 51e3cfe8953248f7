"""
Chat model catalog and client factory.

Both providers speak the OpenAI chat completions protocol, xAI through its
own base URL, so a single ``ChatOpenAI`` client covers them.
"""

from dataclasses import dataclass, field
from typing import Literal, Optional

from langchain_openai import ChatOpenAI

from ..config import Settings

ModelCapability = Literal["general", "reasoning", "code", "vision", "image"]

DEFAULT_PROVIDER_ID = "openai"
DEFAULT_MODEL_ID = "gpt-4o"
XAI_BASE_URL = "https://api.x.ai/v1"


@dataclass(frozen=True)
class ModelOption:
    id: str
    label: str
    description: str
    capability: ModelCapability = "general"
    coming_soon: bool = False


@dataclass(frozen=True)
class ProviderGroup:
    id: str
    name: str
    description: str
    models: tuple[ModelOption, ...] = field(default_factory=tuple)
    base_url: Optional[str] = None

    def find(self, model_id: str) -> Optional[ModelOption]:
        return next((m for m in self.models if m.id == model_id), None)


PROVIDER_GROUPS: tuple[ProviderGroup, ...] = (
    ProviderGroup(
        id="openai",
        name="OpenAI",
        description="Balanced performance and broad tool support.",
        models=(
            ModelOption("gpt-5.1-codex-max", "GPT-5.1 Codex Max", "Most capable Codex model for long-horizon, agentic coding.", "code"),
            ModelOption("gpt-5.1-codex", "GPT-5.1 Codex", "Optimized for agentic coding in Codex flows.", "code"),
            ModelOption("gpt-5.1", "GPT-5.1", "Best general reasoning model with configurable effort."),
            ModelOption("gpt-5-pro", "GPT-5 Pro", "Higher precision version tuned for strategic problem solving.", "reasoning"),
            ModelOption("gpt-5", "GPT-5", "Previous-gen reasoning model with configurable depth."),
            ModelOption("gpt-5-codex", "GPT-5 Codex", "Agentic coding model tuned for iterative code changes.", "code"),
            ModelOption("gpt-5-mini", "GPT-5 Mini", "Cost-efficient for short, well-defined tasks."),
            ModelOption("gpt-5-nano", "GPT-5 Nano", "Fastest option for utility prompts and automations."),
            ModelOption("gpt-4o", "GPT-4o", "Flagship multimodal model with reasoning."),
            ModelOption("gpt-4o-mini", "GPT-4o Mini", "Cost-effective for quick prompts and drafts."),
            ModelOption("o3-mini", "o3 Mini", "Reasoning-focused with lower latency.", "reasoning"),
        ),
    ),
    ProviderGroup(
        id="xai",
        name="xAI",
        description="Grok family models for fast reasoning and multimodal work.",
        base_url=XAI_BASE_URL,
        models=(
            ModelOption("grok-4-1-fast-reasoning", "Grok 4.1 Fast (Reasoning)", "Reasoning-optimized, ideal for planning tasks.", "reasoning"),
            ModelOption("grok-4-1-fast-non-reasoning", "Grok 4.1 Fast (Non-Reasoning)", "Lower latency conversational model."),
            ModelOption("grok-code-fast-1", "Grok Code Fast", "Code-focused responses with up-to-date knowledge.", "code"),
            ModelOption("grok-2-vision-1212", "Grok 2 Vision", "Vision-first multimodal model (coming soon).", "vision", True),
            ModelOption("grok-2-image-1212", "Grok 2 Image", "Image generation pipeline (coming soon).", "image", True),
        ),
    ),
)


class ProviderNotConfiguredError(RuntimeError):
    pass


def get_provider(provider_id: Optional[str]) -> Optional[ProviderGroup]:
    return next((p for p in PROVIDER_GROUPS if p.id == provider_id), None)


def normalize_model_selection(
    provider_id: Optional[str], model_id: Optional[str]
) -> tuple[str, str]:
    """Resolve a (provider, model) pair against the catalog.

    Missing values or an unknown provider fall back to the defaults. An
    unknown model of a known provider falls back to that provider's first
    model.
    """
    if not provider_id or not model_id:
        return DEFAULT_PROVIDER_ID, DEFAULT_MODEL_ID

    provider = get_provider(provider_id)
    if provider is None:
        return DEFAULT_PROVIDER_ID, DEFAULT_MODEL_ID

    model = provider.find(model_id)
    if model is None:
        first = provider.models[0].id if provider.models else DEFAULT_MODEL_ID
        return provider.id, first

    return provider.id, model.id


def create_chat_model(
    settings: Settings,
    provider_id: str,
    model_id: str,
    temperature: Optional[float] = None,
    streaming: bool = False,
) -> ChatOpenAI:
    """Build a langchain chat model for the provider."""
    provider = get_provider(provider_id)
    if provider is None:
        raise ProviderNotConfiguredError(f"Unsupported provider: {provider_id}")

    api_key = settings.providers.key_for(provider.id)
    if not api_key:
        raise ProviderNotConfiguredError(
            f"{provider.id.upper()}_API_KEY is not configured for {provider.name} models."
        )

    kwargs = {"model": model_id, "api_key": api_key, "streaming": streaming}
    if provider.base_url:
        kwargs["base_url"] = provider.base_url
    if temperature is not None:
        kwargs["temperature"] = temperature
    return ChatOpenAI(**kwargs)


def is_agent_eligible(provider_id: Optional[str], settings: Settings) -> bool:
    """Agent path needs the global flag, an allow-listed provider and its key."""
    agent = settings.agent
    if not agent.tools_enabled:
        return False
    if not provider_id or provider_id not in agent.providers:
        return False
    if get_provider(provider_id) is None:
        return False
    return bool(settings.providers.key_for(provider_id))


def catalog(settings: Settings) -> dict:
    """Provider catalog for the model selector."""
    return {
        "defaultProvider": DEFAULT_PROVIDER_ID,
        "defaultModel": DEFAULT_MODEL_ID,
        "providers": [
            {
                "id": group.id,
                "name": group.name,
                "description": group.description,
                "configured": bool(settings.providers.key_for(group.id)),
                "agentEligible": is_agent_eligible(group.id, settings),
                "models": [
                    {
                        "id": m.id,
                        "label": m.label,
                        "description": m.description,
                        "capability": m.capability,
                        "comingSoon": m.coming_soon,
                    }
                    for m in group.models
                ],
            }
            for group in PROVIDER_GROUPS
        ],
    }
