"""Chat Core 顶层包。

该包实现一个受 token 预算约束的对话会话：维护有序的消息窗口，
超出模型上限时按 FIFO 挤出最旧的消息，并编排“提交历史 → 流式接收
增量 → 累计输出 → 持久化”的完整一轮对话。
"""

from chat_core.domain import Chat, ChatConfig, Message, Model
from chat_core.usecases import (
    ChatCompletionConfigInput,
    ChatCompletionEvent,
    ChatCompletionInput,
    ChatCompletionUseCase,
)

__all__ = [
    "Chat",
    "ChatConfig",
    "ChatCompletionConfigInput",
    "ChatCompletionEvent",
    "ChatCompletionInput",
    "ChatCompletionUseCase",
    "Message",
    "Model",
]
