from llm_compare.logging import redact, redact_text


def test_redacts_sensitive_keys_recursively():
    event = {
        "event": "provider_call_failed",
        "config": {"apiKey": "abc", "api_key": "def", "name": "Work"},
        "headers": [{"Authorization": "Bearer xyz123456"}, {"x-api-key": "ghi"}],
        "config_fernet_key": "fernet",
    }
    out = redact(event)
    assert out["config"]["apiKey"] == "[REDACTED]"
    assert out["config"]["api_key"] == "[REDACTED]"
    assert out["config"]["name"] == "Work"
    assert out["headers"][0]["Authorization"] == "[REDACTED]"
    assert out["headers"][1]["x-api-key"] == "[REDACTED]"
    assert out["config_fernet_key"] == "[REDACTED]"


def test_redacts_key_patterns_in_free_text():
    msg = "OpenAI request failed for sk-proj-ABCDEFGH12345 with Bearer tok_abcdef and hf_0123456789abc"
    out = redact_text(msg)
    assert "sk-proj-ABCDEFGH12345" not in out
    assert "tok_abcdef" not in out
    assert "hf_0123456789abc" not in out
    assert out.startswith("OpenAI request failed for ")


def test_redacts_explicit_secrets():
    assert redact("token=hunter2hunter2", secrets=["hunter2hunter2"]) == "token=[REDACTED]"
    assert redact(("a", 1), secrets=[]) == ("a", 1)
