"""Tokenizer 抽象接口。

token 计数与具体模型相关（不同厂商的分词器不同），
领域层只依赖此协议，具体实现放在 infrastructure.tokenizer 下。
"""

from typing import Protocol


class Tokenizer(Protocol):
    """确定性的 token 计数函数：相同 (model_name, text) 必须得到相同结果。"""

    def count(self, model_name: str, text: str) -> int:
        ...
