"""会话中的单条消息（一轮 turn）。

消息在创建时即根据所属会话的 Model 计算 token 数，之后不可变。
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Literal, Optional
from uuid import uuid4

from chat_core.domain.exceptions import ValidationError
from chat_core.domain.model import Model
from chat_core.domain.tokenizer import Tokenizer


Role = Literal["system", "user", "assistant"]

VALID_ROLES = ("system", "user", "assistant")


@dataclass(frozen=True)
class Message:
    id: str
    role: Role
    content: str
    tokens: int
    created_at: datetime

    @classmethod
    def create(cls, role: str, content: str, model: Model, tokenizer: Tokenizer) -> "Message":
        """校验角色与内容后，用 tokenizer 计算 token 数并构造消息。"""

        _validate(role, content)
        tokens = tokenizer.count(model.name, content)
        return cls(
            id=f"m-{uuid4().hex}",
            role=role,  # type: ignore[arg-type]
            content=content,
            tokens=tokens,
            created_at=datetime.now(timezone.utc),
        )

    @classmethod
    def restore(
        cls,
        id: str,
        role: str,
        content: str,
        tokens: int,
        created_at: Optional[datetime],
    ) -> "Message":
        """从持久化数据重建消息，不重新计算 token。"""

        _validate(role, content)
        if created_at is None:
            raise ValidationError(code="INVALID_CREATED_AT", message="message created_at is missing")
        return cls(id=id, role=role, content=content, tokens=int(tokens), created_at=created_at)  # type: ignore[arg-type]


def _validate(role: str, content: str) -> None:
    if role not in VALID_ROLES:
        raise ValidationError(code="INVALID_ROLE", message=f"invalid role: {role!r}")
    if not content:
        raise ValidationError(code="EMPTY_CONTENT", message="content is empty")
