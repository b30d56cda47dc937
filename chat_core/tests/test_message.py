from datetime import timezone

import pytest

from chat_core.domain.exceptions import ValidationError
from chat_core.domain.message import Message
from chat_core.domain.model import Model
from chat_core.infrastructure.tokenizer.estimator import EstimatingTokenizer


class RecordingTokenizer:
    def __init__(self, result=7):
        self.calls = []
        self.result = result

    def count(self, model_name, text):
        self.calls.append((model_name, text))
        return self.result


def test_model_rejects_non_positive_max_tokens():
    with pytest.raises(ValidationError) as ei:
        Model(name="m", max_tokens=0)
    assert ei.value.code == "INVALID_MAX_TOKENS"


def test_model_rejects_empty_name():
    with pytest.raises(ValidationError):
        Model(name="", max_tokens=10)


def test_model_is_immutable():
    model = Model(name="m", max_tokens=10)
    with pytest.raises(AttributeError):
        model.max_tokens = 20


def test_message_create_counts_tokens_once_with_model_name():
    tok = RecordingTokenizer(result=7)
    m = Message.create("user", "hello", Model(name="gpt-x", max_tokens=100), tok)
    assert m.tokens == 7
    assert tok.calls == [("gpt-x", "hello")]
    assert m.role == "user"
    assert m.id.startswith("m-")
    assert m.created_at.tzinfo == timezone.utc


def test_message_rejects_invalid_role():
    with pytest.raises(ValidationError) as ei:
        Message.create("assystant", "hi", Model(name="m", max_tokens=10), RecordingTokenizer())
    assert ei.value.code == "INVALID_ROLE"


def test_message_rejects_empty_content():
    tok = RecordingTokenizer()
    with pytest.raises(ValidationError) as ei:
        Message.create("user", "", Model(name="m", max_tokens=10), tok)
    assert ei.value.code == "EMPTY_CONTENT"
    assert tok.calls == []


def test_message_restore_requires_created_at():
    with pytest.raises(ValidationError) as ei:
        Message.restore(id="m1", role="user", content="x", tokens=1, created_at=None)
    assert ei.value.code == "INVALID_CREATED_AT"


def test_estimating_tokenizer():
    tok = EstimatingTokenizer(chars_per_token=4)
    assert tok.count("any", "") == 0
    assert tok.count("any", "abcd") == 1
    assert tok.count("any", "abcde") == 2
    assert EstimatingTokenizer(chars_per_token=4, overhead=3).count("any", "abcd") == 4


def test_estimating_tokenizer_rejects_bad_ratio():
    with pytest.raises(ValueError):
        EstimatingTokenizer(chars_per_token=0)
