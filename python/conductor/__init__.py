from .agent import Agent
from .cancellation import CancellationToken
from .config import ContinuationConfig, OnFailure, OutputFormat, RetryConfig, RunConfig
from .context import RunContext
from .conversation import ConversationManager
from .errors import (
  ConductorError,
  ContinuationMergeError,
  HandoffResolutionError,
  ProviderError,
  ProviderErrorKind,
  RunCancelledError,
  ToolArgumentError,
  ToolError,
  ToolInvocationError,
  ToolNotFoundError,
)
from .execution import Runner, RunResult, RunStatus, TurnExecutor, TurnOutcome, TurnOutcomeKind
from .handoffs import HandoffDetector, HandoffResult
from .messages import (
  AssistantMessage,
  ConversationRole,
  FunctionToolCall,
  SystemMessage,
  ToolCall,
  ToolCallResponseMessage,
  UserMessage,
)
from .observers import LoggingObserver, NullObserver, RunObserver
from .providers import (
  AnthropicProvider,
  FinishReason,
  LiteLLMProvider,
  ModelProvider,
  OpenAIChatProvider,
  OpenAIResponsesProvider,
  ProviderCapability,
  ProviderResponse,
  StatefulProvider,
  StatelessProvider,
  Usage,
)
from .strategies import ProviderStrategy, StandardStrategy, StatefulStrategy, create_strategy
from .tools import Tool, ToolExecutor
from .continuation import ContinuationOrchestrator, FormatDetector, MergedResult, MergerFactory

__all__ = [
  "Agent",
  "CancellationToken",
  "ContinuationConfig",
  "OnFailure",
  "OutputFormat",
  "RetryConfig",
  "RunConfig",
  "RunContext",
  "ConversationManager",
  "ConductorError",
  "ContinuationMergeError",
  "HandoffResolutionError",
  "ProviderError",
  "ProviderErrorKind",
  "RunCancelledError",
  "ToolArgumentError",
  "ToolError",
  "ToolInvocationError",
  "ToolNotFoundError",
  "Runner",
  "RunResult",
  "RunStatus",
  "TurnExecutor",
  "TurnOutcome",
  "TurnOutcomeKind",
  "HandoffDetector",
  "HandoffResult",
  "AssistantMessage",
  "ConversationRole",
  "FunctionToolCall",
  "SystemMessage",
  "ToolCall",
  "ToolCallResponseMessage",
  "UserMessage",
  "LoggingObserver",
  "NullObserver",
  "RunObserver",
  "AnthropicProvider",
  "FinishReason",
  "LiteLLMProvider",
  "ModelProvider",
  "OpenAIChatProvider",
  "OpenAIResponsesProvider",
  "ProviderCapability",
  "ProviderResponse",
  "StatefulProvider",
  "StatelessProvider",
  "Usage",
  "ProviderStrategy",
  "StandardStrategy",
  "StatefulStrategy",
  "create_strategy",
  "Tool",
  "ToolExecutor",
  "ContinuationOrchestrator",
  "FormatDetector",
  "MergedResult",
  "MergerFactory",
]
