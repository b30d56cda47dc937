"""Provider 端点配置。

这里列出的都是兼容 OpenAI chat/completions 协议的服务：
- name: 逻辑 Provider 名，同时决定从 settings 读取哪组 *_api_key / *_base_url。
- base_url: settings 未覆盖时使用的默认地址。

模型名不在这里映射，直接使用会话 Model.name 作为请求的 model 字段。
"""

from dataclasses import dataclass
from typing import Mapping


@dataclass(frozen=True)
class ProviderConfig:
    name: str
    base_url: str

    @property
    def api_key_setting(self) -> str:
        return f"{self.name}_api_key"

    @property
    def base_url_setting(self) -> str:
        return f"{self.name}_base_url"


OPENAI_CONFIG = ProviderConfig(name="openai", base_url="https://api.openai.com/v1")

# Kimi / Moonshot
KIMI_CONFIG = ProviderConfig(name="kimi", base_url="https://api.moonshot.cn/v1")

# GLM / BigModel
GLM_CONFIG = ProviderConfig(name="glm", base_url="https://open.bigmodel.cn/api/paas/v4")


PROVIDER_REGISTRY: Mapping[str, ProviderConfig] = {
    "openai": OPENAI_CONFIG,
    "kimi": KIMI_CONFIG,
    "glm": GLM_CONFIG,
}


def get_provider_config(name: str) -> ProviderConfig:
    """根据名称获取 ProviderConfig，名称不区分大小写。"""

    key = name.lower()
    for k, cfg in PROVIDER_REGISTRY.items():
        if k.lower() == key:
            return cfg
    raise KeyError(f"Unknown provider: {name!r}")
