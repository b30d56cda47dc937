"""LLM Provider 集成层。

该包下的模块负责：
- 定义流式补全的抽象接口 (base)。
- 维护兼容 OpenAI 协议的 Provider 端点 (registry)。
- 提供基于 httpx 的具体实现 (openai_client)。
"""

from typing import Optional

from chat_core.config.settings import settings
from chat_core.providers.base import CompletionProvider
from chat_core.providers.openai_client import OpenAICompatClient
from chat_core.providers.registry import get_provider_config


def create_provider(name: Optional[str] = None) -> CompletionProvider:
    """根据名称创建 Provider 实例，默认取配置中的 provider。"""

    provider_name = name or getattr(settings, "default_provider", "openai")
    return OpenAICompatClient(get_provider_config(provider_name), settings)


__all__ = ["CompletionProvider", "OpenAICompatClient", "create_provider"]
