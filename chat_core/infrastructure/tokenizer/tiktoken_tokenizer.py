"""基于 tiktoken 的 token 计数器（默认实现）。

按模型名选择编码：tiktoken 认识的模型用其专属编码，
不认识的模型（例如其他厂商的兼容模型）回退到 cl100k_base。
"""

import threading
from typing import Dict

import tiktoken


FALLBACK_ENCODING = "cl100k_base"


class TiktokenTokenizer:
    def __init__(self, fallback_encoding: str = FALLBACK_ENCODING):
        self.fallback_encoding = fallback_encoding
        self._encodings: Dict[str, "tiktoken.Encoding"] = {}
        self._lock = threading.Lock()

    def count(self, model_name: str, text: str) -> int:
        if not text:
            return 0
        return len(self._encoding_for(model_name).encode(text, disallowed_special=()))

    def _encoding_for(self, model_name: str) -> "tiktoken.Encoding":
        with self._lock:
            encoding = self._encodings.get(model_name)
            if encoding is None:
                try:
                    encoding = tiktoken.encoding_for_model(model_name)
                except KeyError:
                    encoding = tiktoken.get_encoding(self.fallback_encoding)
                self._encodings[model_name] = encoding
            return encoding
