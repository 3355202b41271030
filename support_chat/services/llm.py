"""LangChain gateway to the hosted chat model."""
import enum
import logging
from collections.abc import Sequence

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from support_chat.config import Settings

logger = logging.getLogger(__name__)

SYSTEM_PROMPT_TEMPLATE = """You are a helpful support agent for "{store_name}", a small e-commerce store. Answer clearly and concisely.

Here is what you know about our store:

## Shipping Policy
- We offer free shipping on orders over $50
- Standard shipping takes 3-5 business days within the US
- Express shipping (1-2 business days) is available for $12.99
- We ship to all 50 US states and Puerto Rico
- International shipping is not currently available

## Return & Refund Policy
- Returns are accepted within 30 days of purchase
- Items must be unworn, unwashed, and in original packaging
- Return shipping is free for defective items
- For other returns, customer pays return shipping ($5.99 flat rate)
- Refunds are processed within 5-7 business days of receiving the return
- Gift cards and final sale items cannot be returned

## Support Hours
- Our support team is available Monday-Friday, 9 AM - 6 PM EST
- Weekend support is limited to email only
- Response time: typically within 2 hours during business hours

## Payment Methods
- We accept all major credit cards (Visa, Mastercard, Amex, Discover)
- PayPal, Apple Pay, and Google Pay are also accepted
- All payments are securely processed

If you don't know the answer to a question, politely say you don't have that information and suggest they contact our support team at {support_email}."""

EMPTY_REPLY = "I apologize, but I couldn't generate a response. Please try again."


class GatewayErrorKind(str, enum.Enum):
    NOT_CONFIGURED = "not_configured"
    UNAUTHORIZED = "unauthorized"
    RATE_LIMITED = "rate_limited"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    UNKNOWN = "unknown"


USER_MESSAGES: dict[GatewayErrorKind, str] = {
    GatewayErrorKind.NOT_CONFIGURED: "LLM service not configured. Please check API key.",
    GatewayErrorKind.UNAUTHORIZED: "Invalid API key. Please contact support.",
    GatewayErrorKind.RATE_LIMITED: "Service is experiencing high demand. Please try again in a moment.",
    GatewayErrorKind.UPSTREAM_UNAVAILABLE: "Our AI service is temporarily unavailable. Please try again.",
    GatewayErrorKind.UNKNOWN: "Something went wrong. Please try again.",
}


class GatewayError(Exception):
    """A failed reply, reduced to a category and a sentence safe to show users."""

    def __init__(self, kind: GatewayErrorKind, status_code: int | None = None):
        self.kind = kind
        self.status_code = status_code
        super().__init__(USER_MESSAGES[kind])

    @property
    def user_message(self) -> str:
        return USER_MESSAGES[self.kind]


def classify_status(status_code: int | None) -> GatewayErrorKind:
    """Map a provider HTTP status to an error category."""
    if status_code == 401:
        return GatewayErrorKind.UNAUTHORIZED
    if status_code == 429:
        return GatewayErrorKind.RATE_LIMITED
    if status_code is not None and 500 <= status_code < 600:
        return GatewayErrorKind.UPSTREAM_UNAVAILABLE
    return GatewayErrorKind.UNKNOWN


def build_system_prompt(store_name: str, support_email: str) -> str:
    return SYSTEM_PROMPT_TEMPLATE.format(store_name=store_name, support_email=support_email)


def _turn_to_langchain(turn) -> BaseMessage:
    """Convert a stored turn (anything with ``sender`` and ``text``) to a LangChain message."""
    sender = getattr(turn.sender, "value", turn.sender)
    if sender == "user":
        return HumanMessage(content=turn.text)
    return AIMessage(content=turn.text)


def _content_to_text(content) -> str:
    if isinstance(content, str):
        return content
    # Some providers return a list of content blocks
    parts = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


def create_llm(settings: Settings, **kwargs) -> BaseChatModel:
    """
    Create a LangChain chat model based on config.

    Retries are disabled: a failed call is reported once, never repeated.

    Args:
        settings: Application settings (provider, model, key, sampling limits)
        **kwargs: Additional kwargs passed to the LLM constructor
    """
    provider = settings.LLM_PROVIDER.lower()
    params: dict = {
        "model": settings.LLM_MODEL,
        "temperature": settings.LLM_TEMPERATURE,
        "max_tokens": settings.LLM_MAX_TOKENS,
        "max_retries": 0,
    }
    if settings.LLM_TIMEOUT is not None:
        params["timeout"] = settings.LLM_TIMEOUT
    params.update(kwargs)

    if provider == "openai":
        from langchain_openai import ChatOpenAI

        return ChatOpenAI(api_key=settings.LLM_API_KEY, **params)

    elif provider == "anthropic":
        from langchain_anthropic import ChatAnthropic

        return ChatAnthropic(api_key=settings.LLM_API_KEY, **params)

    elif provider == "openai_compatible":
        from langchain_openai import ChatOpenAI

        return ChatOpenAI(
            api_key=settings.LLM_API_KEY,
            base_url=settings.LLM_BASE_URL,
            **params,
        )

    else:
        raise ValueError(f"Unknown LLM provider: {provider}")


class LLMGateway:
    """Single-attempt chat completion with a fixed store-policy prompt."""

    def __init__(
        self,
        llm: BaseChatModel | None,
        *,
        system_prompt: str,
        history_window: int = 10,
    ):
        self.llm = llm
        self.system_prompt = system_prompt
        self.history_window = history_window

    @classmethod
    def from_settings(cls, settings: Settings) -> "LLMGateway":
        """Build the gateway; without a credential the model is left unset."""
        llm = create_llm(settings) if settings.llm_configured else None
        if llm is None:
            logger.warning("LLM_API_KEY is not set; replies will use the fallback message")
        return cls(
            llm,
            system_prompt=build_system_prompt(settings.STORE_NAME, settings.SUPPORT_EMAIL),
            history_window=settings.HISTORY_WINDOW,
        )

    @property
    def is_configured(self) -> bool:
        return self.llm is not None

    def build_messages(self, history: Sequence, user_message: str) -> list[BaseMessage]:
        """System prompt, then the most recent prior turns, then the new utterance."""
        recent = list(history)[-self.history_window:] if self.history_window > 0 else []
        return [
            SystemMessage(content=self.system_prompt),
            *(_turn_to_langchain(turn) for turn in recent),
            HumanMessage(content=user_message),
        ]

    def generate_reply(self, history: Sequence, user_message: str) -> str:
        """Ask the model for a reply; raises GatewayError on any failure."""
        if self.llm is None:
            raise GatewayError(GatewayErrorKind.NOT_CONFIGURED)

        messages = self.build_messages(history, user_message)
        logger.info("Calling LLM with %d messages", len(messages))
        try:
            response = self.llm.invoke(messages)
        except Exception as exc:
            status_code = getattr(exc, "status_code", None)
            kind = classify_status(status_code)
            logger.error("LLM call failed (%s, status=%s): %s", kind.value, status_code, exc)
            raise GatewayError(kind, status_code=status_code) from exc

        reply = _content_to_text(response.content).strip()
        return reply or EMPTY_REPLY
