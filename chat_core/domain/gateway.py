from typing import Protocol

from chat_core.domain.chat import Chat


class ChatGateway(Protocol):
    """会话持久化网关，是会话跨轮次身份与连续性的唯一来源。

    find_chat_by_id 在会话不存在时必须抛出 NotFoundError，
    用例依赖这一点区分“新建会话”和“真正的存储故障”。
    """

    def create_chat(self, chat: Chat) -> None:
        ...

    def find_chat_by_id(self, chat_id: str) -> Chat:
        ...

    def save_chat(self, chat: Chat) -> None:
        ...
