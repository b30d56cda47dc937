from dataclasses import dataclass

from chat_core.domain.exceptions import ValidationError


@dataclass(frozen=True)
class Model:
    """模型标识及其上下文 token 上限，构造后不可变。"""

    name: str
    max_tokens: int

    def __post_init__(self) -> None:
        if not self.name:
            raise ValidationError(code="INVALID_MODEL_NAME", message="model name is empty")
        if not isinstance(self.max_tokens, int) or isinstance(self.max_tokens, bool) or self.max_tokens <= 0:
            raise ValidationError(
                code="INVALID_MAX_TOKENS",
                message=f"model max tokens must be a positive integer, got {self.max_tokens!r}",
            )
