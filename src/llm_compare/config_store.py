from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import structlog
from pydantic import ValidationError

from .crypto import decrypt_bytes, encrypt_bytes
from .errors import ConfigStoreError
from .models import BaseProviderConfig, parse_provider_config
from .provider_kinds import ProviderKind

log = structlog.get_logger()

# Group order of the dashboard's saved settings. "google" has no adapter and
# is always written back empty.
PERSISTED_GROUPS = ("openai", "anthropic", "google", "ollama", "huggingface", "gguf")


def dump_provider_configs(configs: Iterable[BaseProviderConfig]) -> dict[str, list[dict[str, Any]]]:
    """Group configurations by kind, keeping their relative order."""
    grouped: dict[str, list[dict[str, Any]]] = {group: [] for group in PERSISTED_GROUPS}
    for cfg in configs:
        grouped[cfg.kind.value].append(cfg.to_persisted())
    return grouped


def parse_provider_configs(data: Mapping[str, Any]) -> list[BaseProviderConfig]:
    """Inverse of `dump_provider_configs`.

    Missing or non-list groups read as empty. Items lacking a `provider` tag
    take the kind of the group they are stored under.
    """
    if not isinstance(data, Mapping):
        raise ConfigStoreError("Provider configuration payload must be a JSON object.")

    configs: list[BaseProviderConfig] = []
    for kind in ProviderKind:
        items = data.get(kind.value)
        if not isinstance(items, list):
            continue
        for item in items:
            if not isinstance(item, dict):
                raise ConfigStoreError(f"Invalid {kind.value} configuration entry.")
            entry = {"provider": kind.value, **item}
            try:
                configs.append(parse_provider_config(entry))
            except ValidationError as e:
                raise ConfigStoreError(
                    f"Invalid {kind.value} configuration {item.get('id')!r}: {e.error_count()} error(s)."
                ) from e

    skipped = data.get("google")
    if isinstance(skipped, list) and skipped:
        log.warning("config_store_google_group_ignored", count=len(skipped))
    return configs


class ProviderConfigStore:
    """
    File-backed store for the dashboard's provider configurations.

    Writes ONE JSON document at `path`, grouped by provider kind. When a
    Fernet key is given the document is encrypted at rest, since it holds
    provider API keys.
    """

    def __init__(self, path: str | Path, fernet_key: str | None = None):
        self.path = Path(path)
        self.fernet_key = fernet_key

    def exists(self) -> bool:
        return self.path.exists()

    def save(self, configs: Iterable[BaseProviderConfig]) -> None:
        raw = json.dumps(dump_provider_configs(configs), indent=2).encode("utf-8")
        if self.fernet_key:
            raw = encrypt_bytes(self.fernet_key, raw)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_bytes(raw)
        log.info("provider_configs_saved", path=str(self.path), encrypted=bool(self.fernet_key))

    def load(self) -> list[BaseProviderConfig]:
        if not self.exists():
            return []
        raw = self.path.read_bytes()
        if self.fernet_key:
            raw = decrypt_bytes(self.fernet_key, raw)
        try:
            payload = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ConfigStoreError(f"Provider configuration file {self.path} is not valid JSON.") from e
        return parse_provider_configs(payload)
