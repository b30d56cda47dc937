"""Chat 聚合根：有序消息窗口 + token 预算。

- messages: 当前上下文窗口（从旧到新）。
- erased_messages: 因超出预算被挤出窗口的消息，按挤出顺序追加，只增不减。
- token_usage: 始终等于 messages 中 tokens 之和，且不超过 model.max_tokens。

挤出策略是严格的 FIFO，不区分角色，system 消息同样会被挤出。
"""

from dataclasses import dataclass, field
from typing import List, Literal, Optional
from uuid import uuid4

from chat_core.domain.exceptions import ChatEndedError, MessageTooLargeError, ValidationError
from chat_core.domain.message import Message
from chat_core.domain.model import Model


ChatStatus = Literal["active", "ended"]

MIN_TEMPERATURE = 0.0
MAX_TEMPERATURE = 2.0


@dataclass
class ChatConfig:
    """采样参数，原样透传给 Provider；除温度范围外不做校验。"""

    model: Model
    temperature: float = 1.0
    top_p: float = 1.0
    n: int = 1
    stop: List[str] = field(default_factory=list)
    max_tokens: Optional[int] = None  # 单次回答的最大输出 token
    presence_penalty: float = 0.0
    frequency_penalty: float = 0.0


@dataclass
class Chat:
    id: str
    user_id: str
    config: ChatConfig
    initial_system_message: Optional[Message] = None
    messages: List[Message] = field(default_factory=list)
    erased_messages: List[Message] = field(default_factory=list)
    status: ChatStatus = "active"
    token_usage: int = 0

    @classmethod
    def create(
        cls,
        user_id: str,
        initial_system_message: Message,
        config: ChatConfig,
        chat_id: Optional[str] = None,
    ) -> "Chat":
        """创建新会话并立即追加初始 system 消息。"""

        if not user_id:
            raise ValidationError(code="EMPTY_USER_ID", message="user id is empty")
        if not MIN_TEMPERATURE <= config.temperature <= MAX_TEMPERATURE:
            raise ValidationError(
                code="INVALID_TEMPERATURE",
                message=f"temperature must be within [0, 2], got {config.temperature}",
            )
        chat = cls(
            id=chat_id or str(uuid4()),
            user_id=user_id,
            config=config,
            initial_system_message=initial_system_message,
        )
        chat.add_message(initial_system_message)
        return chat

    @property
    def is_ended(self) -> bool:
        return self.status == "ended"

    def add_message(self, message: Message) -> None:
        """追加一条消息，必要时按 FIFO 挤出最旧的消息。

        Raises:
            ChatEndedError: 会话已结束。
            MessageTooLargeError: 单条消息本身就超过模型上限。
        """

        if self.is_ended:
            raise ChatEndedError(self.id)
        max_tokens = self.config.model.max_tokens
        if message.tokens > max_tokens:
            raise MessageTooLargeError(message.tokens, max_tokens)
        while max_tokens < message.tokens + self.token_usage:
            erased = self.messages.pop(0)
            self.erased_messages.append(erased)
            self.token_usage -= erased.tokens
        self.messages.append(message)
        self.token_usage += message.tokens

    def end(self) -> None:
        self.status = "ended"

    def get_messages(self) -> List[Message]:
        return list(self.messages)

    def count_messages(self) -> int:
        return len(self.messages)

    def refresh_token_usage(self) -> None:
        """按当前 messages 全量重算 token_usage（用于从存储重建后）。"""

        self.token_usage = sum(m.tokens for m in self.messages)
