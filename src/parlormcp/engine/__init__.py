"""Engine domain: strategy selection and reply generation."""

from parlormcp.engine.completion import build_completion_service
from parlormcp.engine.completion import classify_http_status
from parlormcp.engine.completion import CompletionError
from parlormcp.engine.completion import CompletionErrorKind
from parlormcp.engine.completion import CompletionService
from parlormcp.engine.completion import NoopCompletionService
from parlormcp.engine.completion import OpenAICompatibleCompletionService
from parlormcp.engine.context import analyze_response_context
from parlormcp.engine.context import ConversationPatterns
from parlormcp.engine.context import ResponseContext
from parlormcp.engine.generator import GeneratedReply
from parlormcp.engine.generator import GenerationStage
from parlormcp.engine.generator import PersonaStyle
from parlormcp.engine.generator import ResponseGenerator
from parlormcp.engine.prompt_builder import build_system_prompt
from parlormcp.engine.prompt_builder import build_user_prompt
from parlormcp.engine.strategy import Priority
from parlormcp.engine.strategy import ResponseStrategy
from parlormcp.engine.strategy import ResponseStrategySelector
from parlormcp.engine.strategy import StrategyType

__all__ = [
    "CompletionError",
    "CompletionErrorKind",
    "CompletionService",
    "ConversationPatterns",
    "GeneratedReply",
    "GenerationStage",
    "NoopCompletionService",
    "OpenAICompatibleCompletionService",
    "PersonaStyle",
    "Priority",
    "ResponseContext",
    "ResponseGenerator",
    "ResponseStrategy",
    "ResponseStrategySelector",
    "StrategyType",
    "analyze_response_context",
    "build_completion_service",
    "build_system_prompt",
    "build_user_prompt",
    "classify_http_status",
]
