"""对外 API 服务模块。

提供简化的函数接口供上层应用（HTTP/SSE 处理器、CLI）调用，
默认使用 JSON 文件网关、配置中的 Provider 与 tiktoken 计数。
"""

from typing import Any, Dict, Iterator, List, Optional

from chat_core.config.settings import settings
from chat_core.domain.chat import Chat
from chat_core.domain.exceptions import BusinessError
from chat_core.domain.tokenizer import Tokenizer
from chat_core.infrastructure.logging.logger import logger
from chat_core.infrastructure.storage.json_store import JsonChatGateway
from chat_core.infrastructure.tokenizer.estimator import EstimatingTokenizer
from chat_core.infrastructure.tokenizer.tiktoken_tokenizer import TiktokenTokenizer
from chat_core.prompts import load_system_prompt
from chat_core.providers import create_provider
from chat_core.usecases.chat_completion_stream import (
    ChatCompletionConfigInput,
    ChatCompletionInput,
    ChatCompletionUseCase,
)
from chat_core.usecases.session_lock import SessionLockManager


_gateway: Optional[JsonChatGateway] = None
_use_case: Optional[ChatCompletionUseCase] = None


def get_gateway() -> JsonChatGateway:
    global _gateway
    if _gateway is None:
        _gateway = JsonChatGateway(root=settings.storage_root)
    return _gateway


def create_tokenizer(kind: Optional[str] = None) -> Tokenizer:
    """按配置创建 tokenizer：tiktoken（默认）或字符估算。"""

    kind = kind or settings.tokenizer
    if kind == "estimate":
        return EstimatingTokenizer(chars_per_token=settings.chars_per_token)
    return TiktokenTokenizer()


def get_default_use_case() -> ChatCompletionUseCase:
    """获取默认的流式对话用例实例（单例）。"""
    global _use_case
    if _use_case is None:
        _use_case = ChatCompletionUseCase(
            gateway=get_gateway(),
            provider=create_provider(),
            tokenizer=create_tokenizer(),
            locks=SessionLockManager(timeout=settings.session_lock_timeout),
        )
    return _use_case


def default_config_input(**overrides: Any) -> ChatCompletionConfigInput:
    """用 settings 中的默认值构造新会话配置，overrides 优先。"""

    values: Dict[str, Any] = {
        "model": settings.default_model,
        "model_max_tokens": settings.model_max_tokens,
        "temperature": settings.temperature,
        "top_p": settings.top_p,
        "max_tokens": settings.max_output_tokens,
    }
    values.update({k: v for k, v in overrides.items() if v is not None})
    if not values.get("initial_system_message"):
        values["initial_system_message"] = load_system_prompt(settings.prompt_locale)
    return ChatCompletionConfigInput(**values)


def stream_chat(
    user_id: str,
    user_message: str,
    chat_id: Optional[str] = None,
    config: Optional[ChatCompletionConfigInput] = None,
) -> Iterator[Dict[str, Any]]:
    """运行一轮流式对话，逐个产出事件字典。

    每个事件包含 kind / chat_id / user_id / content，
    content 为截至目前的累计文本；最后一个事件 kind == "final"。
    """
    use_case = get_default_use_case()
    events = use_case.execute(
        ChatCompletionInput(
            chat_id=chat_id,
            user_id=user_id,
            user_message=user_message,
            config=config or default_config_input(),
        )
    )
    try:
        for event in events:
            yield {
                "kind": event.kind,
                "chat_id": event.chat_id,
                "user_id": event.user_id,
                "content": event.content,
            }
    except BusinessError as e:
        logger.error(f"Chat turn failed: {e.message}", extra={"extra": {
            "chat_id": chat_id,
            "error_code": e.code,
        }})
        raise
    finally:
        events.close()


def run_chat(
    user_id: str,
    user_message: str,
    chat_id: Optional[str] = None,
    config: Optional[ChatCompletionConfigInput] = None,
) -> Dict[str, Any]:
    """运行一轮对话并只返回最终结果 {chat_id, user_id, content}。"""

    final: Dict[str, Any] = {}
    for event in stream_chat(user_id, user_message, chat_id=chat_id, config=config):
        if event["kind"] == "final":
            final = event
    return {"chat_id": final["chat_id"], "user_id": final["user_id"], "content": final["content"]}


def end_chat(chat_id: str) -> Dict[str, Any]:
    """结束会话（不可逆），之后该会话不再接受新消息。

    与进行中的轮次共用会话锁，等该轮保存完成后再结束。
    """

    return _chat_summary(get_default_use_case().end_chat(chat_id))


def list_chats(user_id: Optional[str] = None) -> List[Dict[str, Any]]:
    """列出会话摘要，可按 user_id 过滤。"""

    return [_chat_summary(c) for c in get_gateway().list_chats(user_id=user_id)]


def get_chat_messages(chat_id: str, include_erased: bool = False) -> List[Dict[str, Any]]:
    """获取会话当前窗口内的消息；include_erased=True 时先列出已被挤出的消息。"""

    chat = get_gateway().find_chat_by_id(chat_id)
    messages = (chat.erased_messages if include_erased else []) + chat.get_messages()
    return [
        {
            "id": m.id,
            "role": m.role,
            "content": m.content,
            "tokens": m.tokens,
            "created_at": m.created_at.isoformat(),
        }
        for m in messages
    ]


def _chat_summary(chat: Chat) -> Dict[str, Any]:
    return {
        "id": chat.id,
        "user_id": chat.user_id,
        "status": chat.status,
        "model": chat.config.model.name,
        "max_tokens": chat.config.model.max_tokens,
        "token_usage": chat.token_usage,
        "message_count": chat.count_messages(),
        "erased_count": len(chat.erased_messages),
    }
