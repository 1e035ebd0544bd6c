"""User settings: provider selection, endpoints, and encrypted API keys."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from functools import cached_property
from pathlib import Path
from typing import Any, Callable, Dict, Mapping

from cryptography.fernet import Fernet, InvalidToken

from ..utils.files import atomic_write_bytes, atomic_write_text

__all__ = [
    "PROVIDER_CHOICES",
    "SecretVault",
    "Settings",
    "SettingsStore",
    "parse_override",
    "redact_secret",
]

LOGGER = logging.getLogger(__name__)

PROVIDER_CHOICES: tuple[str, ...] = ("ollama", "openai")
THEME_CHOICES: tuple[str, ...] = ("light", "dark")

_STATE_DIR = Path.home() / ".atelier"
_FORMAT_VERSION = 1
_CIPHER_SUFFIX = "_ciphertext"
_SECRET_FIELDS: tuple[str, ...] = ("api_key", "execution_api_key")
_TRUTHY = frozenset({"1", "true", "yes", "on", "debug"})
_FALSY = frozenset({"0", "false", "no", "off", "disabled"})
_NONE_WORDS = frozenset({"none", "null"})


def _parse_flag(raw: str) -> bool:
    return raw.strip().lower() in _TRUTHY


# env var -> (settings field, parser)
_ENV_OVERRIDES: Mapping[str, tuple[str, Callable[[str], Any]]] = {
    "ATELIER_PROVIDER": ("provider", str),
    "ATELIER_MODEL": ("model", str),
    "ATELIER_API_KEY": ("api_key", str),
    "ATELIER_OLLAMA_URL": ("ollama_url", str),
    "ATELIER_BASE_URL": ("base_url", str),
    "ATELIER_THEME": ("theme", str),
    "ATELIER_EXECUTION_URL": ("execution_url", str),
    "ATELIER_EXECUTION_API_KEY": ("execution_api_key", str),
    "ATELIER_DEBUG_LOGGING": ("debug_logging", _parse_flag),
    "ATELIER_REQUEST_TIMEOUT": ("request_timeout", float),
    "ATELIER_TEMPERATURE": ("temperature", float),
}


@dataclass(slots=True)
class Settings:
    """Everything the CLI and the providers read from configuration."""

    provider: str = "ollama"
    model: str = "codellama"
    ollama_url: str = "http://localhost:11434"
    base_url: str = "https://api.openai.com/v1"
    api_key: str = ""
    temperature: float = 0.7
    max_tokens: int = 2_000
    request_timeout: float = 90.0
    max_retries: int = 3
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 6.0
    execution_url: str = "https://judge0-ce.p.rapidapi.com"
    execution_api_key: str = ""
    theme: str = "dark"
    debug_logging: bool = False
    project_path: str | None = None


class SecretVault:
    """Symmetric encryption for API keys at rest.

    Tokens look like ``fernet:<token>``. The key file is created on first
    use with owner-only permissions.
    """

    name = "fernet"

    def __init__(self, *, key_path: Path | None = None) -> None:
        self._key_path = key_path or (_STATE_DIR / "settings.key")

    @property
    def strategy(self) -> str:
        return self.name

    def encrypt(self, secret: str) -> str:
        if not secret:
            return ""
        return f"{self.name}:{self._cipher.encrypt(secret.encode('utf-8')).decode('ascii')}"

    def decrypt(self, token: str | None) -> str:
        """Return the plaintext for ``token``; ``ValueError`` if it cannot be read."""

        if not token:
            return ""
        prefix, sep, body = token.partition(":")
        if prefix != self.name or not sep or not body:
            raise ValueError(f"Unknown secret token prefix {prefix!r}")
        try:
            return self._cipher.decrypt(body.encode("ascii")).decode("utf-8")
        except InvalidToken as exc:
            raise ValueError("Secret token does not match the local key") from exc

    @cached_property
    def _cipher(self) -> Fernet:
        if self._key_path.exists():
            return Fernet(self._key_path.read_bytes().strip())
        key = Fernet.generate_key()
        atomic_write_bytes(self._key_path, key, mode=0o600)
        LOGGER.debug("Created settings key at %s", self._key_path)
        return Fernet(key)


class SettingsStore:
    """Reads and writes :class:`Settings` as JSON, applying overrides on load."""

    def __init__(self, path: Path | None = None, *, vault: SecretVault | None = None) -> None:
        self._path = path or (_STATE_DIR / "settings.json")
        self._vault = vault or SecretVault(key_path=self._path.with_suffix(".key"))

    @property
    def path(self) -> Path:
        return self._path

    @property
    def vault(self) -> SecretVault:
        return self._vault

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        """Return persisted settings with CLI ``overrides`` and then the environment applied."""

        settings = self._decode(self._read_json())
        if overrides:
            settings = _merge(settings, overrides, source="CLI")
        env = _environment_overrides()
        if env:
            settings = _merge(settings, env, source="environment")
        return _validate(settings)

    def save(self, settings: Settings) -> Path:
        record = asdict(settings)
        for name in _SECRET_FIELDS:
            secret = record.pop(name) or ""
            if secret:
                record[name + _CIPHER_SUFFIX] = self._vault.encrypt(secret)
        record["version"] = _FORMAT_VERSION
        atomic_write_text(self._path, json.dumps(record, indent=2, sort_keys=True))
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _decode(self, record: Dict[str, Any]) -> Settings:
        if not record:
            return Settings()
        known = {item.name for item in fields(Settings)} - set(_SECRET_FIELDS)
        values = {key: value for key, value in record.items() if key in known}
        for name in _SECRET_FIELDS:
            secret = self._reveal(record.get(name + _CIPHER_SUFFIX), name)
            if secret:
                values[name] = secret
        try:
            return Settings(**values)
        except TypeError as exc:
            LOGGER.warning("Ignoring unreadable settings in %s: %s", self._path, exc)
            return Settings()

    def _reveal(self, token: Any, name: str) -> str:
        if not isinstance(token, str) or not token:
            return ""
        try:
            return self._vault.decrypt(token)
        except ValueError as exc:
            LOGGER.warning("Dropping stored %s: %s", name, exc)
            return ""

    def _read_json(self) -> Dict[str, Any]:
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        return dict(data) if isinstance(data, Mapping) else {}


def _environment_overrides() -> Dict[str, Any]:
    found: Dict[str, Any] = {}
    for env_name, (field_name, parse) in _ENV_OVERRIDES.items():
        raw = os.environ.get(env_name)
        if raw is None:
            continue
        try:
            found[field_name] = parse(raw)
        except ValueError:
            LOGGER.warning("Ignoring %s=%r: not a valid %s", env_name, raw, getattr(parse, "__name__", "value"))
    return found


def _merge(settings: Settings, overrides: Mapping[str, Any], *, source: str) -> Settings:
    known = {item.name for item in fields(Settings)}
    accepted = {key: value for key, value in overrides.items() if key in known and value is not None}
    if not accepted:
        return settings
    LOGGER.debug("Applying %s overrides: %s", source, sorted(accepted))
    return replace(settings, **accepted)


def _validate(settings: Settings) -> Settings:
    provider = (settings.provider or "").strip().lower()
    if provider not in PROVIDER_CHOICES:
        LOGGER.warning("Unknown provider %r; using ollama", settings.provider)
        provider = "ollama"
    theme = settings.theme
    if theme not in THEME_CHOICES:
        LOGGER.warning("Unknown theme %r; using dark", theme)
        theme = "dark"
    if (provider, theme) == (settings.provider, settings.theme):
        return settings
    return replace(settings, provider=provider, theme=theme)


def parse_override(entry: str) -> tuple[str, Any]:
    """Parse a ``KEY=VALUE`` override into a typed value for that setting."""

    key, sep, raw = entry.partition("=")
    key = key.strip()
    if not sep:
        raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
    if not key:
        raise ValueError("Override is missing a field name.")
    declared = {item.name: str(item.type) for item in fields(Settings)}
    if key not in declared:
        raise ValueError(f"Unknown setting '{key}'.")
    return key, _coerce(declared[key], raw.strip())


def _coerce(type_name: str, raw: str) -> Any:
    base, _, rest = type_name.partition("|")
    base = base.strip()
    if "None" in rest and raw.lower() in _NONE_WORDS:
        return None
    if base == "bool":
        lowered = raw.lower()
        if lowered in _TRUTHY:
            return True
        if lowered in _FALSY:
            return False
        raise ValueError(f"Cannot coerce '{raw}' to a boolean.")
    if base == "int":
        return int(raw, 10)
    if base == "float":
        return float(raw)
    return raw


def redact_secret(value: str) -> str:
    """Mask all but the first and last two characters of ``value``."""

    secret = (value or "").strip()
    if len(secret) <= 4:
        return "*" * len(secret)
    return secret[:2] + "*" * (len(secret) - 4) + secret[-2:]
