"""系统提示词加载工具。

按语言(locale) 从 prompts/<locale>/chat_system.md 读取新会话的
初始 system prompt，用于构造 Message(role="system")。
"""

from pathlib import Path


PROMPTS_DIR = Path(__file__).resolve().parent


def load_system_prompt(locale: str = "zh") -> str:
    """加载指定语言的默认系统提示词，找不到该语言时回退到 zh。"""

    fname = PROMPTS_DIR / locale / "chat_system.md"
    if not fname.exists():
        fname = PROMPTS_DIR / "zh" / "chat_system.md"
    return fname.read_text(encoding="utf-8").strip()
