import pytest

from llm_compare.crypto import decrypt_bytes, encrypt_bytes, generate_key
from llm_compare.errors import ConfigStoreError


def test_encrypt_decrypt_roundtrip():
    key = "rYdGvZpTz4l7mOZ1m3cQ3EJ4xJ8k2bq7d2H1m1v7QkA="
    data = b'{"openai": []}'
    token = encrypt_bytes(key, data)
    assert token != data
    assert decrypt_bytes(key, token) == data


def test_invalid_key_raises_config_store_error():
    with pytest.raises(ConfigStoreError):
        encrypt_bytes("not-a-key", b"x")


def test_wrong_key_raises_config_store_error():
    token = encrypt_bytes(generate_key(), b"x")
    with pytest.raises(ConfigStoreError):
        decrypt_bytes(generate_key(), token)
