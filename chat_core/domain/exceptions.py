"""统一业务异常模型。

所有跨模块抛出的业务级错误都继承自 BusinessError，
调用方（HTTP/SSE 层或 CLI）可以按 code 做统一捕获与提示。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "CHAT_ENDED"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 chat_id、provider 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class ValidationError(BusinessError):
    """参数或配置校验失败（角色非法、内容为空、温度越界等）。"""


class ChatEndedError(BusinessError):
    """会话已结束，不允许再追加消息。"""

    def __init__(self, chat_id: str):
        super().__init__(
            code="CHAT_ENDED",
            message="chat is ended, no more messages allowed",
            http_status=409,
            chat_id=chat_id,
        )


class MessageTooLargeError(BusinessError):
    """单条消息的 token 数超过模型上限，清空历史也放不下。"""

    def __init__(self, tokens: int, max_tokens: int):
        super().__init__(
            code="MESSAGE_TOO_LARGE",
            message=f"message needs {tokens} tokens but model allows {max_tokens}",
            http_status=413,
            tokens=tokens,
            max_tokens=max_tokens,
        )


class ChatBusyError(BusinessError):
    """同一会话的上一轮仍在进行，等待超时。"""

    def __init__(self, chat_id: str, timeout: float):
        super().__init__(
            code="CHAT_BUSY",
            message=f"chat {chat_id} is busy with another turn",
            http_status=409,
            chat_id=chat_id,
            timeout=timeout,
        )


class NotFoundError(BusinessError):
    """存储中不存在该会话，是唯一会被用例“预期处理”的存储错误。"""


class StorageError(BusinessError):
    """存储读写失败。"""


class StreamError(BusinessError):
    """流式补全失败（打开流或读取增量时出错）。"""


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、超时等。"""


class ApiError(BusinessError):
    """第三方 API 返回非 2xx/429 错误时抛出。"""


class RateLimitError(BusinessError):
    """Provider 限流错误，本包不做重试。"""
