"""流式对话补全用例。

一次 execute 驱动完整的一轮对话：

1. 通过网关按 chat_id 查找会话；不存在则按输入配置新建并持久化。
2. 构造 user 消息并加入会话（可能挤出旧消息）。
3. 把当前窗口内的全部消息连同采样参数提交给 Provider，请求流式输出。
4. 逐条消费增量，累加后向调用方产出“截至目前的完整文本”。
5. 流结束后构造 assistant 消息加入会话（可能再次挤出），最后保存会话。

execute 返回生成器：调用方拉取一个事件，用例才继续读取下一个增量，
不会在内存中堆积未消费的事件。调用方提前 close() 生成器（例如客户端断开）
等同于流失败：关闭 Provider 流，不保存会话。

任何一步失败都以单个 BusinessError 结束本轮，不做重试。唯一的持久化写入
是最后的 save_chat（新会话额外有一次 create_chat），因此失败不会留下半轮数据。
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Literal, Optional
from uuid import uuid4

from chat_core.domain.chat import Chat, ChatConfig
from chat_core.domain.exceptions import BusinessError, NotFoundError, StorageError, StreamError
from chat_core.domain.gateway import ChatGateway
from chat_core.domain.message import Message
from chat_core.domain.model import Model
from chat_core.domain.models import ChatMessage, ChatRequest, ChatUsage
from chat_core.domain.tokenizer import Tokenizer
from chat_core.infrastructure.logging.logger import logger
from chat_core.providers.base import CompletionProvider
from chat_core.usecases.session_lock import SessionLockManager


@dataclass
class ChatCompletionConfigInput:
    """新建会话时使用的模型与采样配置。"""

    model: str
    model_max_tokens: int
    initial_system_message: str
    temperature: float = 1.0
    top_p: float = 1.0
    n: int = 1
    stop: List[str] = field(default_factory=list)
    max_tokens: Optional[int] = None
    presence_penalty: float = 0.0
    frequency_penalty: float = 0.0


@dataclass
class ChatCompletionInput:
    chat_id: Optional[str]
    user_id: str
    user_message: str
    config: ChatCompletionConfigInput


@dataclass
class ChatCompletionEvent:
    """用例产出的事件。

    kind:
        - "delta": 收到新增量后产出，content 为截至目前的累计文本（不是增量本身）。
        - "final": 本轮成功结束（会话已保存），content 为完整回答。
    """

    kind: Literal["delta", "final"]
    chat_id: str
    user_id: str
    content: str


class ChatCompletionUseCase:
    def __init__(
        self,
        gateway: ChatGateway,
        provider: CompletionProvider,
        tokenizer: Tokenizer,
        locks: Optional[SessionLockManager] = None,
    ):
        self._gateway = gateway
        self._provider = provider
        self._tokenizer = tokenizer
        self._locks = locks or SessionLockManager()

    def execute(self, input: ChatCompletionInput) -> Iterator[ChatCompletionEvent]:
        """执行一轮流式对话，返回只能消费一次的事件生成器。

        同一 chat_id 的并发调用在整个生成器生命周期内串行执行。

        Raises:
            ValidationError / ChatEndedError / MessageTooLargeError: 领域校验失败。
            StorageError: 查找、创建或保存会话失败。
            StreamError: 打开或读取补全流失败（任何异常都会被包装，原因链保留）。
            ChatBusyError: 同一会话的上一轮在锁超时内没有结束。
        """

        chat_id = input.chat_id or str(uuid4())
        with self._locks.lock(chat_id):
            yield from self._execute_locked(chat_id, input)

    def _execute_locked(self, chat_id: str, input: ChatCompletionInput) -> Iterator[ChatCompletionEvent]:
        start_time = time.time()
        log_ctx: Dict[str, Any] = {
            "trace_id": f"tr-{uuid4().hex}",
            "chat_id": chat_id,
            "user_id": input.user_id,
        }

        chat = self._load_or_create_chat(chat_id, input, log_ctx)

        user_message = Message.create("user", input.user_message, chat.config.model, self._tokenizer)
        self._add_message(chat, user_message, log_ctx)

        req = self._build_request(chat)
        self._log(
            logging.INFO,
            "Calling provider (stream)",
            log_ctx,
            provider=self._provider.name,
            model=req.model,
            message_count=len(req.messages),
            token_usage=chat.token_usage,
        )

        pieces: List[str] = []
        finish_reason: Optional[str] = None
        usage: Optional[ChatUsage] = None
        stream: Optional[Iterator[Any]] = None
        try:
            stream = iter(self._provider.chat_stream(req))
            for chunk in stream:
                if chunk.usage:
                    usage = chunk.usage
                if chunk.choices and chunk.choices[0].finish_reason:
                    finish_reason = chunk.choices[0].finish_reason
                fragment = chunk.text
                if not fragment:
                    continue
                pieces.append(fragment)
                yield ChatCompletionEvent(
                    kind="delta",
                    chat_id=chat.id,
                    user_id=chat.user_id,
                    content="".join(pieces),
                )
        except BusinessError as e:
            raise self._stream_failed(chat, pieces, log_ctx, e.code, e.message) from e
        except GeneratorExit:
            self._log(logging.WARNING, "Stream cancelled by caller", log_ctx)
            raise
        except Exception as e:
            raise self._stream_failed(chat, pieces, log_ctx, type(e).__name__, str(e)) from e
        finally:
            close = getattr(stream, "close", None)
            if close is not None:
                close()

        if usage:
            self._log(
                logging.INFO,
                "Token usage",
                log_ctx,
                prompt_tokens=usage.prompt_tokens,
                completion_tokens=usage.completion_tokens,
                total_tokens=usage.total_tokens,
            )

        full_text = "".join(pieces)
        assistant_message = Message.create("assistant", full_text, chat.config.model, self._tokenizer)
        self._add_message(chat, assistant_message, log_ctx)

        try:
            self._gateway.save_chat(chat)
        except BusinessError as e:
            raise StorageError(
                code="SAVE_CHAT_FAILED",
                message=f"error saving chat: {e.message}",
                http_status=500,
                chat_id=chat.id,
            ) from e

        self._log(
            logging.INFO,
            "Completed chat turn",
            log_ctx,
            elapsed_seconds=round(time.time() - start_time, 2),
            finish_reason=finish_reason,
            message_count=chat.count_messages(),
            token_usage=chat.token_usage,
        )
        yield ChatCompletionEvent(kind="final", chat_id=chat.id, user_id=chat.user_id, content=full_text)

    def end_chat(self, chat_id: str) -> Chat:
        """结束会话并保存。

        与 execute 共用同一把会话锁：进行中的轮次先完成保存，
        然后才读取、结束并保存，避免旧副本把状态覆盖回 active。
        """

        with self._locks.lock(chat_id):
            chat = self._gateway.find_chat_by_id(chat_id)
            chat.end()
            self._gateway.save_chat(chat)
        self._log(logging.INFO, "Ended chat", {"chat_id": chat_id})
        return chat

    def _stream_failed(
        self,
        chat: Chat,
        pieces: List[str],
        log_ctx: Dict[str, Any],
        cause_code: str,
        cause_message: str,
    ) -> StreamError:
        self._log(
            logging.ERROR,
            "Stream failed",
            log_ctx,
            error_code=cause_code,
            error=cause_message,
            received_chars=sum(len(p) for p in pieces),
        )
        return StreamError(
            code="STREAM_FAILED",
            message=f"error streaming response: {cause_message}",
            http_status=502,
            chat_id=chat.id,
            cause_code=cause_code,
        )

    def _load_or_create_chat(self, chat_id: str, input: ChatCompletionInput, log_ctx: Dict[str, Any]) -> Chat:
        try:
            return self._gateway.find_chat_by_id(chat_id)
        except NotFoundError:
            pass
        except BusinessError as e:
            raise StorageError(
                code="FIND_CHAT_FAILED",
                message=f"error fetching chat: {e.message}",
                http_status=500,
                chat_id=chat_id,
            ) from e

        chat = create_new_chat(chat_id, input, self._tokenizer)
        try:
            self._gateway.create_chat(chat)
        except BusinessError as e:
            raise StorageError(
                code="CREATE_CHAT_FAILED",
                message=f"error persisting new chat: {e.message}",
                http_status=500,
                chat_id=chat_id,
            ) from e
        self._log(logging.INFO, "Created new chat", log_ctx, model=chat.config.model.name)
        return chat

    def _add_message(self, chat: Chat, message: Message, log_ctx: Dict[str, Any]) -> None:
        erased_before = len(chat.erased_messages)
        chat.add_message(message)
        evicted = len(chat.erased_messages) - erased_before
        if evicted:
            self._log(
                logging.INFO,
                "Evicted messages from context window",
                log_ctx,
                evicted=evicted,
                token_usage=chat.token_usage,
                max_tokens=chat.config.model.max_tokens,
            )

    def _build_request(self, chat: Chat) -> ChatRequest:
        cfg = chat.config
        return ChatRequest(
            provider=self._provider.name,
            model=cfg.model.name,
            messages=[ChatMessage(role=m.role, content=m.content) for m in chat.get_messages()],
            temperature=cfg.temperature,
            top_p=cfg.top_p,
            n=cfg.n,
            stop=list(cfg.stop),
            max_tokens=cfg.max_tokens,
            presence_penalty=cfg.presence_penalty,
            frequency_penalty=cfg.frequency_penalty,
        )

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})


def create_new_chat(chat_id: str, input: ChatCompletionInput, tokenizer: Tokenizer) -> Chat:
    """按输入配置构造新会话（含初始 system 消息），不做持久化。"""

    cfg = input.config
    model = Model(name=cfg.model, max_tokens=cfg.model_max_tokens)
    chat_config = ChatConfig(
        model=model,
        temperature=cfg.temperature,
        top_p=cfg.top_p,
        n=cfg.n,
        stop=list(cfg.stop),
        max_tokens=cfg.max_tokens,
        presence_penalty=cfg.presence_penalty,
        frequency_penalty=cfg.frequency_penalty,
    )
    initial_message = Message.create("system", cfg.initial_system_message, model, tokenizer)
    return Chat.create(input.user_id, initial_message, chat_config, chat_id=chat_id)
