import pytest

from chat_core.api import service
from chat_core.domain.exceptions import ChatEndedError
from chat_core.domain.models import ChatStreamChoice, ChatStreamChunk
from chat_core.infrastructure.storage.json_store import JsonChatGateway
from chat_core.infrastructure.tokenizer.estimator import EstimatingTokenizer
from chat_core.infrastructure.tokenizer.tiktoken_tokenizer import TiktokenTokenizer
from chat_core.prompts import load_system_prompt
from chat_core.usecases.chat_completion_stream import ChatCompletionUseCase


class LenTokenizer:
    def count(self, model_name, text):
        return len(text)


class FakeProvider:
    name = "fake"

    def chat_stream(self, req):
        for piece in ("o", "k"):
            yield ChatStreamChunk(provider="fake", model=req.model, choices=[ChatStreamChoice(index=0, content=piece)])


@pytest.fixture
def wired(tmp_path, monkeypatch):
    gateway = JsonChatGateway(root=tmp_path / ".storage")
    use_case = ChatCompletionUseCase(gateway=gateway, provider=FakeProvider(), tokenizer=LenTokenizer())
    monkeypatch.setattr(service, "_gateway", gateway)
    monkeypatch.setattr(service, "_use_case", use_case)
    return gateway


def small_config(**kw):
    return service.default_config_input(model="gpt-test", model_max_tokens=40, initial_system_message="sys", **kw)


def test_stream_chat_yields_event_dicts(wired):
    events = list(service.stream_chat("u1", "hello", chat_id="c1", config=small_config()))
    assert [(e["kind"], e["content"]) for e in events] == [("delta", "o"), ("delta", "ok"), ("final", "ok")]
    assert events[-1]["chat_id"] == "c1"


def test_run_chat_returns_final_result(wired):
    result = service.run_chat("u1", "hello", chat_id="c1", config=small_config())
    assert result == {"chat_id": "c1", "user_id": "u1", "content": "ok"}


def test_end_chat_blocks_further_turns(wired):
    service.run_chat("u1", "hello", chat_id="c1", config=small_config())
    summary = service.end_chat("c1")
    assert summary["status"] == "ended"
    with pytest.raises(ChatEndedError):
        service.run_chat("u1", "again", chat_id="c1", config=small_config())


def test_list_chats_and_messages(wired):
    service.run_chat("alice", "x" * 20, chat_id="c1", config=small_config())
    service.run_chat("alice", "y" * 20, chat_id="c1", config=small_config())
    service.run_chat("bob", "hi", chat_id="c2", config=small_config())

    alice = service.list_chats(user_id="alice")
    assert [c["id"] for c in alice] == ["c1"]
    assert alice[0]["token_usage"] <= alice[0]["max_tokens"]
    assert alice[0]["erased_count"] > 0

    window = service.get_chat_messages("c1")
    everything = service.get_chat_messages("c1", include_erased=True)
    assert len(everything) == len(window) + alice[0]["erased_count"]
    assert everything[0]["role"] == "system"


def test_default_config_input_falls_back_to_prompt_file(monkeypatch):
    monkeypatch.setattr(service.settings, "prompt_locale", "en")
    cfg = service.default_config_input(model="gpt-test")
    assert cfg.model == "gpt-test"
    assert cfg.initial_system_message == load_system_prompt("en")
    assert cfg.model_max_tokens == service.settings.model_max_tokens


def test_load_system_prompt_unknown_locale_falls_back_to_zh():
    assert load_system_prompt("xx") == load_system_prompt("zh")


def test_create_tokenizer_follows_settings(monkeypatch):
    monkeypatch.setattr(service.settings, "tokenizer", "tiktoken")
    assert isinstance(service.create_tokenizer(), TiktokenTokenizer)
    monkeypatch.setattr(service.settings, "tokenizer", "estimate")
    assert isinstance(service.create_tokenizer(), EstimatingTokenizer)
