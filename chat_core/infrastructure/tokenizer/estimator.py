"""基于字符数的 token 估算器。

经验值：英文文本约 4 个字符对应 1 个 token。不同模型的真实分词结果
会有偏差，需要精确计数时替换为实现 Tokenizer 协议的其他类即可。
"""

import math


class EstimatingTokenizer:
    """按 ceil(len(text) / chars_per_token) + overhead 估算 token 数。

    空文本计为 0；overhead 只加在非空文本上（模拟每条消息的格式开销）。
    """

    def __init__(self, chars_per_token: int = 4, overhead: int = 0):
        if chars_per_token < 1:
            raise ValueError("chars_per_token must be >= 1")
        if overhead < 0:
            raise ValueError("overhead must be >= 0")
        self.chars_per_token = chars_per_token
        self.overhead = overhead

    def count(self, model_name: str, text: str) -> int:
        if not text:
            return 0
        return math.ceil(len(text) / self.chars_per_token) + self.overhead
