"""Provider 抽象接口。

用例层不直接依赖具体厂商的 HTTP 接口，而是依赖此协议：

- 每个厂商（或每类兼容接口）实现一个 CompletionProvider。
- chat_stream 返回一个迭代器：逐条产出增量，迭代正常结束即流结束标记，
  中途抛出的 BusinessError 视为流失败。
- 调用方对迭代器调用 close() 即取消本次流式请求。
"""

from typing import Iterator, Protocol

from chat_core.domain.models import ChatRequest, ChatStreamChunk


class CompletionProvider(Protocol):
    """LLM 流式补全客户端协议。

    实现者需要提供：
    - name: Provider 名称，用于日志/统计。
    - chat_stream(req): 执行一次流式补全调用。
    """

    name: str

    def chat_stream(self, req: ChatRequest) -> Iterator[ChatStreamChunk]:
        ...
