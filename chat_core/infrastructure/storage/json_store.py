import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional
from uuid import uuid4

from chat_core.config.settings import settings
from chat_core.domain.chat import Chat, ChatConfig
from chat_core.domain.exceptions import BusinessError, NotFoundError, StorageError, ValidationError
from chat_core.domain.gateway import ChatGateway
from chat_core.domain.message import Message
from chat_core.domain.model import Model


class JsonChatGateway(ChatGateway):
    """以 JSON 文件保存会话：<root>/chats/<chat_id>.json，一个会话一个文件。

    写入先落到临时文件再 os.replace，保证读到的总是完整文档。
    """

    def __init__(self, root: str | Path | None = None):
        self._root = Path(root or settings.storage_root).resolve()
        self._chat_root = self._root / "chats"
        self._chat_root.mkdir(parents=True, exist_ok=True)

    def create_chat(self, chat: Chat) -> None:
        path = self._path(chat.id)
        if path.exists():
            raise StorageError(code="CHAT_EXISTS", message=f"chat already exists: {chat.id}", http_status=409)
        self._write(path, chat)

    def find_chat_by_id(self, chat_id: str) -> Chat:
        path = self._path(chat_id)
        if not path.exists():
            raise NotFoundError(code="CHAT_NOT_FOUND", message=f"chat not found: {chat_id}", http_status=404)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise StorageError(code="STORE_READ_ERROR", message=str(e)) from e
        try:
            return self._to_chat(data)
        except (KeyError, TypeError, ValueError, ValidationError) as e:
            raise StorageError(code="STORE_READ_ERROR", message=f"corrupt chat document {chat_id}: {e}") from e

    def save_chat(self, chat: Chat) -> None:
        self._write(self._path(chat.id), chat)

    def list_chats(self, user_id: Optional[str] = None) -> List[Chat]:
        items: List[Chat] = []
        for path in sorted(self._chat_root.glob("*.json")):
            try:
                chat = self.find_chat_by_id(path.stem)
            except BusinessError:
                continue
            if user_id is None or chat.user_id == user_id:
                items.append(chat)
        return items

    def delete_chat(self, chat_id: str) -> None:
        path = self._path(chat_id)
        if not path.exists():
            raise NotFoundError(code="CHAT_NOT_FOUND", message=f"chat not found: {chat_id}", http_status=404)
        try:
            path.unlink()
        except OSError as e:
            raise StorageError(code="STORE_DELETE_ERROR", message=str(e)) from e

    def _path(self, chat_id: str) -> Path:
        if not chat_id or chat_id in (".", "..") or "/" in chat_id or "\\" in chat_id:
            raise ValidationError(code="INVALID_CHAT_ID", message=f"invalid chat id: {chat_id!r}")
        return self._chat_root / f"{chat_id}.json"

    def _write(self, path: Path, chat: Chat) -> None:
        tmp_path = path.with_name(f"{path.stem}.{uuid4().hex}.json.tmp")
        try:
            tmp_path.write_text(json.dumps(self._to_dict(chat), ensure_ascii=False), encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise StorageError(code="STORE_WRITE_ERROR", message=str(e)) from e

    def _to_dict(self, chat: Chat) -> Dict[str, Any]:
        cfg = chat.config
        return {
            "id": chat.id,
            "user_id": chat.user_id,
            "status": chat.status,
            "token_usage": chat.token_usage,
            "config": {
                "model": {"name": cfg.model.name, "max_tokens": cfg.model.max_tokens},
                "temperature": cfg.temperature,
                "top_p": cfg.top_p,
                "n": cfg.n,
                "stop": list(cfg.stop),
                "max_tokens": cfg.max_tokens,
                "presence_penalty": cfg.presence_penalty,
                "frequency_penalty": cfg.frequency_penalty,
            },
            "initial_system_message": (
                _message_to_dict(chat.initial_system_message) if chat.initial_system_message else None
            ),
            "messages": [_message_to_dict(m) for m in chat.messages],
            "erased_messages": [_message_to_dict(m) for m in chat.erased_messages],
        }

    def _to_chat(self, data: Dict[str, Any]) -> Chat:
        cfg = data["config"]
        model = Model(name=cfg["model"]["name"], max_tokens=int(cfg["model"]["max_tokens"]))
        config = ChatConfig(
            model=model,
            temperature=float(cfg.get("temperature", 1.0)),
            top_p=float(cfg.get("top_p", 1.0)),
            n=int(cfg.get("n", 1)),
            stop=list(cfg.get("stop") or []),
            max_tokens=cfg.get("max_tokens"),
            presence_penalty=float(cfg.get("presence_penalty", 0.0)),
            frequency_penalty=float(cfg.get("frequency_penalty", 0.0)),
        )
        status = data.get("status", "active")
        if status not in ("active", "ended"):
            raise ValueError(f"invalid status: {status!r}")
        initial = data.get("initial_system_message")
        chat = Chat(
            id=data["id"],
            user_id=data["user_id"],
            config=config,
            initial_system_message=_message_from_dict(initial) if initial else None,
            messages=[_message_from_dict(m) for m in data.get("messages") or []],
            erased_messages=[_message_from_dict(m) for m in data.get("erased_messages") or []],
            status=status,
        )
        chat.refresh_token_usage()
        return chat


def _message_to_dict(message: Message) -> Dict[str, Any]:
    return {
        "id": message.id,
        "role": message.role,
        "content": message.content,
        "tokens": message.tokens,
        "created_at": message.created_at.astimezone(timezone.utc).isoformat().replace("+00:00", "Z"),
    }


def _message_from_dict(data: Dict[str, Any]) -> Message:
    return Message.restore(
        id=data["id"],
        role=data["role"],
        content=data.get("content") or "",
        tokens=int(data.get("tokens", 0)),
        created_at=datetime.fromisoformat(str(data["created_at"]).replace("Z", "+00:00")),
    )
