"""用例层：编排领域对象、网关与 Provider，完成一轮对话。"""

from chat_core.usecases.chat_completion_stream import (
    ChatCompletionConfigInput,
    ChatCompletionEvent,
    ChatCompletionInput,
    ChatCompletionUseCase,
)
from chat_core.usecases.session_lock import SessionLockManager

__all__ = [
    "ChatCompletionConfigInput",
    "ChatCompletionEvent",
    "ChatCompletionInput",
    "ChatCompletionUseCase",
    "SessionLockManager",
]
