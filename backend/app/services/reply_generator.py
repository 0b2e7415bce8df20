"""
Reply Generator adapters.

The outlet core treats the supportive reply as opaque content; it only relies
on the risk level that comes back with it. This module provides the
abstraction plus two implementations:

- TemplateReplyGenerator: canned supportive / crisis replies (default).
- HttpReplyGenerator: delegates to an external service over HTTP.

Any failure is raised as DependencyError. A failing generator never
degrades to "risk 0".
"""
from abc import ABC, abstractmethod
from typing import Optional

import httpx
from pydantic import BaseModel, Field, ValidationError

from backend.app.core.config import get_settings
from backend.app.core.exceptions import DependencyError
from backend.app.core.logging import get_logger, correlation_id_ctx
from backend.app.core.resilience import CircuitBreaker, reply_circuit_breaker
from backend.app.schemas.outlet import Visibility
from backend.app.services.risk_classifier import classify_risk, should_escalate

logger = get_logger(__name__)

EMPTY_PROMPT_REPLY = "Tell me what's going on. I'm here."

SUPPORT_REPLY = (
    "Thank you, I hear you.\n\n"
    "What would a **reasonable outcome** look like for you?\n"
    "Answer in one sentence."
)

CRISIS_REPLY = (
    "I'm really glad you said something.\n\n"
    "If you're in immediate danger, call 911 or go to the nearest ER.\n"
    "In the U.S., you can call or text **988**.\n\n"
    "If you want, we can escalate this to an admin right now.\n\n"
    "Are you safe right this moment? (yes/no)"
)


class GeneratedReply(BaseModel):
    """Standardised response from any reply generator."""
    reply: str
    risk_level: int = Field(0, ge=0, alias="riskLevel")

    model_config = {"populate_by_name": True}


class ReplyGenerator(ABC):
    """Abstract base class for reply generators."""

    name = "reply-generator"

    @abstractmethod
    async def generate(self, text: str, category: Optional[str], visibility: Visibility) -> GeneratedReply:
        """Produce a reply to the owner's message together with its risk level."""
        ...


class TemplateReplyGenerator(ReplyGenerator):
    """Deterministic replies; the crisis template is used when the classifier fires."""

    name = "template"

    async def generate(self, text: str, category: Optional[str], visibility: Visibility) -> GeneratedReply:
        message = (text or "").strip()
        if not message:
            return GeneratedReply(reply=EMPTY_PROMPT_REPLY, risk_level=0)
        risk_level = classify_risk(message)
        if should_escalate(risk_level):
            return GeneratedReply(reply=CRISIS_REPLY, risk_level=risk_level)
        return GeneratedReply(reply=SUPPORT_REPLY, risk_level=risk_level)


class HttpReplyGenerator(ReplyGenerator):
    """Adapter for an external reply service (POST {text, category, visibility})."""

    name = "http"

    def __init__(self, endpoint_url: str, timeout_seconds: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.endpoint_url = endpoint_url
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def generate(self, text: str, category: Optional[str], visibility: Visibility) -> GeneratedReply:
        headers = {}
        correlation_id = correlation_id_ctx.get()
        if correlation_id:
            headers["X-Correlation-ID"] = correlation_id

        async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout_seconds) as client:
            resp = await client.post(
                self.endpoint_url,
                json={
                    "text": text,
                    "category": category,
                    "visibility": Visibility(visibility).value,
                },
                headers=headers,
            )
            resp.raise_for_status()
            data = resp.json()
        return GeneratedReply.model_validate(data)


def get_reply_generator(provider: Optional[str] = None) -> ReplyGenerator:
    """
    Factory function. Returns the configured reply generator.

    Priority: provider argument > REPLY_GENERATOR_PROVIDER setting > template.
    """
    settings = get_settings()
    effective_provider = provider or settings.reply_generator_provider or "template"

    if effective_provider == "template":
        return TemplateReplyGenerator()
    if effective_provider == "http":
        if not settings.reply_generator_url:
            raise DependencyError("REPLY_GENERATOR_URL is required for the http reply generator", dependency="http")
        return HttpReplyGenerator(
            settings.reply_generator_url,
            timeout_seconds=settings.reply_generator_timeout_seconds,
        )
    raise DependencyError(f"Unknown reply generator provider: {effective_provider}", dependency=effective_provider)


async def generate_reply(
    generator: ReplyGenerator,
    text: str,
    category: Optional[str],
    visibility: Visibility,
    breaker: CircuitBreaker = reply_circuit_breaker,
) -> GeneratedReply:
    """Call the generator through the circuit breaker, normalising failures to DependencyError."""
    try:
        return await breaker.call(generator.generate, text, category, visibility)
    except DependencyError:
        raise
    except (httpx.HTTPError, ValidationError, ValueError) as e:
        logger.error(
            f"Reply generator '{generator.name}' failed: {e}",
            extra={"extra_data": {"dependency": generator.name, "error_type": type(e).__name__}},
        )
        raise DependencyError(
            "The reply service is unavailable; your message was not saved. Please retry.",
            dependency=generator.name,
        ) from e
    except Exception as e:
        # Unexpected collaborator fault; still never treated as "no risk"
        logger.exception(
            f"Reply generator '{generator.name}' raised unexpectedly: {type(e).__name__}",
            extra={"extra_data": {"dependency": generator.name, "error_type": type(e).__name__}},
        )
        raise DependencyError(
            "The reply service is unavailable; your message was not saved. Please retry.",
            dependency=generator.name,
        ) from e
