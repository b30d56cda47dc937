"""OpenAI 兼容协议的流式补全适配器。

本模块负责：

1. 接收统一的 ChatRequest。
2. 将其转换为 {base_url}/chat/completions 的请求体（stream=true）。
3. 逐行读取 SSE 响应，处理网络/API 异常。
4. 将每个 data 事件解析为统一的 ChatStreamChunk。

OpenAI、Kimi(Moonshot)、GLM(BigModel) 使用同一套字段，
差异只在 base_url 和 API Key，由 ProviderConfig + settings 提供。
"""

import json
from typing import Any, Dict, Iterator, Optional

import httpx

from chat_core.config.settings import settings as default_settings
from chat_core.domain.exceptions import ApiError, NetworkError, RateLimitError, ValidationError
from chat_core.domain.models import (
    ChatMessage,
    ChatRequest,
    ChatStreamChoice,
    ChatStreamChunk,
    ChatUsage,
)
from chat_core.providers.registry import ProviderConfig


class OpenAICompatClient:
    """OpenAI 兼容的流式补全客户端。"""

    def __init__(self, provider_config: ProviderConfig, settings=default_settings):
        self._provider = provider_config
        self._settings = settings
        self.name = provider_config.name

    def chat_stream(self, req: ChatRequest) -> Iterator[ChatStreamChunk]:
        """执行一次流式补全调用，逐步 yield ChatStreamChunk。

        生成器被提前 close() 时，with 块退出会关闭底层 HTTP 连接。
        """

        api_key = getattr(self._settings, self._provider.api_key_setting, None)
        if not api_key:
            # 配置缺失走 ValidationError，方便上层统一处理
            raise ValidationError(
                code="MISSING_API_KEY",
                message=f"{self._provider.api_key_setting.upper()} not set",
            )
        payload = self._build_payload(req)
        base = getattr(self._settings, self._provider.base_url_setting, None) or self._provider.base_url
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                with client.stream(
                    "POST",
                    f"{base}/chat/completions",
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {api_key}",
                        "Content-Type": "application/json",
                    },
                ) as resp:
                    if resp.status_code == 429:
                        raise RateLimitError(code="RATE_LIMIT", message=f"{self.name} rate limit", http_status=429)
                    if resp.status_code >= 400:
                        resp.read()
                        raise ApiError(code="API_ERROR", message=resp.text, http_status=resp.status_code)
                    for line in resp.iter_lines():
                        data_str = self._strip_sse_prefix(line)
                        if not data_str:
                            continue
                        if data_str == "[DONE]":
                            return
                        try:
                            payload_chunk = json.loads(data_str)
                        except json.JSONDecodeError:
                            continue
                        if not isinstance(payload_chunk, dict):
                            continue
                        yield self._parse_stream_chunk(payload_chunk, req)
        except httpx.RequestError as e:
            # 网络错误：DNS 失败、连接超时、读取中断等
            raise NetworkError(code="NETWORK_ERROR", message=str(e), provider=self.name)

    def _build_payload(self, req: ChatRequest) -> Dict[str, Any]:
        """将 ChatRequest 转成 chat/completions 请求 JSON。"""

        payload: Dict[str, Any] = {
            "model": req.model,
            "messages": [self._message_to_payload(m) for m in req.messages],
            "temperature": req.temperature,
            "top_p": req.top_p,
            "n": req.n,
            "presence_penalty": req.presence_penalty,
            "frequency_penalty": req.frequency_penalty,
            "stream": True,
        }
        if req.stop:
            payload["stop"] = list(req.stop)
        if req.max_tokens:
            payload["max_tokens"] = req.max_tokens
        return payload

    @staticmethod
    def _message_to_payload(message: ChatMessage) -> Dict[str, Any]:
        return {"role": message.role, "content": message.content}

    @staticmethod
    def _strip_sse_prefix(line: str) -> str:
        if not line:
            return ""
        if line.startswith("data:"):
            return line[5:].strip()
        return line.strip()

    def _parse_stream_chunk(self, data: dict, req: ChatRequest) -> ChatStreamChunk:
        """解析流式响应中的单条增量。"""

        choices: list[ChatStreamChoice] = []
        raw_choices = data.get("choices")
        if not isinstance(raw_choices, list):
            raw_choices = []
        for i, ch in enumerate(raw_choices):
            if not isinstance(ch, dict):
                continue
            delta = ch.get("delta")
            if not isinstance(delta, dict):
                delta = {}
            content = delta.get("content")
            choices.append(
                ChatStreamChoice(
                    index=ch.get("index", i),
                    content=content if isinstance(content, str) else "",
                    finish_reason=ch.get("finish_reason"),
                )
            )
        return ChatStreamChunk(
            provider=self.name,
            model=req.model,
            choices=choices,
            usage=self._parse_usage(data.get("usage")),
        )

    @staticmethod
    def _parse_usage(usage_raw: Any) -> Optional[ChatUsage]:
        if not usage_raw or not isinstance(usage_raw, dict):
            return None
        return ChatUsage(
            prompt_tokens=usage_raw.get("prompt_tokens", 0),
            completion_tokens=usage_raw.get("completion_tokens", 0),
            total_tokens=usage_raw.get("total_tokens", 0),
        )
