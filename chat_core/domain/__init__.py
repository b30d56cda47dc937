"""领域层模型与协议。

包含：
- model / message / chat: Model 值对象、Message 与 Chat 聚合根（含 token 预算与挤出逻辑）。
- gateway / tokenizer: 会话存储与 token 计数的抽象协议。
- models: 发给 Provider 的请求与流式增量模型。
- exceptions: 业务异常类型定义。
"""

from chat_core.domain.chat import Chat, ChatConfig
from chat_core.domain.message import Message
from chat_core.domain.model import Model

__all__ = ["Chat", "ChatConfig", "Message", "Model"]
