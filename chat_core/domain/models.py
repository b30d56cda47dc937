"""发给补全服务的请求模型与流式增量模型。

- ChatMessage: 投影给 Provider 的一条消息（只有 role/content）。
- ChatRequest: 一次完整的流式补全请求，携带会话配置中的采样参数。
- ChatStreamChunk: Provider 解析后的单条流式增量。

Provider 适配层负责在各家 API 的 JSON 和这些模型之间做转换，
用例层只依赖这里的结构。
"""

from dataclasses import dataclass, field
from typing import List, Optional

from chat_core.domain.message import Role


@dataclass
class ChatMessage:
    role: Role
    content: str


@dataclass
class ChatRequest:
    provider: str  # 逻辑 Provider 名，如 "openai"
    model: str  # 厂商模型名，直接取自会话的 Model.name
    messages: List[ChatMessage]
    temperature: float = 1.0
    top_p: float = 1.0
    n: int = 1
    stop: List[str] = field(default_factory=list)
    max_tokens: Optional[int] = None
    presence_penalty: float = 0.0
    frequency_penalty: float = 0.0


@dataclass
class ChatUsage:
    """Provider 返回的 token 统计信息（部分厂商在最后一个增量里给出）。"""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass
class ChatStreamChoice:
    index: int
    content: str
    finish_reason: Optional[str] = None


@dataclass
class ChatStreamChunk:
    """流式对话的单条增量，choice.content 是本次新增的文本片段。"""

    provider: str
    model: str
    choices: List[ChatStreamChoice]
    usage: Optional[ChatUsage] = None

    @property
    def text(self) -> str:
        """第一个候选的增量文本，没有候选时为空串。"""

        if not self.choices:
            return ""
        return self.choices[0].content or ""
