"""Minimal interactive demo of a streaming chat session."""

import sys

from chat_core.api.service import run_chat, stream_chat

if __name__ == "__main__":
    user_id = "demo-user"
    chat_id = sys.argv[1] if len(sys.argv) > 1 else None
    question = "用一句话介绍一下你自己"
    printed = 0
    for event in stream_chat(user_id, question, chat_id=chat_id):
        if event["kind"] == "delta":
            print(event["content"][printed:], end="", flush=True)
            printed = len(event["content"])
        else:
            chat_id = event["chat_id"]
    print()
    follow_up = run_chat(user_id, "再简短一点", chat_id=chat_id)
    print("Chat:", follow_up["chat_id"])
    print("Assistant:", follow_up["content"])
