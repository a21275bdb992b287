"""Service layer orchestrations for the support assistant."""

from .extraction import ModelOrderStrategy, OrderNumberExtractor, RegexOrderStrategy, normalize_order_number
from .generation import ChatBackend, GenerationConfig, OpenAIChatBackend
from .orders import MagentoOrderClient, OrderLookupError, OrderStatusProvider
from .query import ConversationSession, PromptBuilder, PromptBuilderConfig, QueryPipeline, QueryRewriter, SessionStore

__all__ = [
    "ChatBackend",
    "ConversationSession",
    "GenerationConfig",
    "MagentoOrderClient",
    "ModelOrderStrategy",
    "OpenAIChatBackend",
    "OrderLookupError",
    "OrderNumberExtractor",
    "OrderStatusProvider",
    "PromptBuilder",
    "PromptBuilderConfig",
    "QueryPipeline",
    "QueryRewriter",
    "RegexOrderStrategy",
    "SessionStore",
    "normalize_order_number",
]
