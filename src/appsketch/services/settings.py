"""Settings dataclass and its on-disk store.

Settings live in ``~/.appsketch/settings.json``. The API key never touches
that file in clear text: it is written as a Fernet token whose key sits in a
sibling ``.key`` file. Values resolve in three layers, each overriding the
last: the file, explicit overrides (the ``--set`` flags), then ``APPSKETCH_*``
environment variables.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, NamedTuple

from cryptography.fernet import Fernet, InvalidToken

from ..editor.document_model import DEFAULT_APP_NAME, DEFAULT_THEME_COLOR

__all__ = [
    "Settings",
    "SettingsStore",
    "SecretVault",
    "redact_secret",
]

LOGGER = logging.getLogger(__name__)

_APP_DIR = Path.home() / ".appsketch"
_FILE_VERSION = 1
_CIPHERTEXT_KEY = "api_key_ciphertext"
_TOKEN_SCHEME = "fernet"
_TRUTHY = frozenset({"1", "true", "yes", "on", "debug"})


@dataclass(slots=True)
class Settings:
    """Everything the builder needs to reach the generation service."""

    base_url: str = "https://api.openai.com/v1"
    api_key: str = ""
    model: str = "gpt-4o-mini"
    image_model: str = "gpt-image-1"
    image_size: str = "1024x1024"
    temperature: float = 0.7
    organization: str | None = None
    request_timeout: float = 90.0
    max_retries: int = 3
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 6.0
    default_app_name: str = DEFAULT_APP_NAME
    default_theme_color: str = DEFAULT_THEME_COLOR
    default_headers: dict[str, str] = field(default_factory=dict)
    debug_logging: bool = False


def _field_names(*, exclude: frozenset[str] = frozenset()) -> frozenset[str]:
    return frozenset(item.name for item in fields(Settings)) - exclude


def _atomic_write(path: Path, data: bytes, *, private: bool = False) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    staging = path.with_name(f".{path.name}.partial")
    staging.write_bytes(data)
    if private and os.name != "nt":  # pragma: no cover
        os.chmod(staging, 0o600)
    staging.replace(path)


class _EnvOverride(NamedTuple):
    field_name: str
    parse: Callable[[str], Any]


def _parse_flag(raw: str) -> bool:
    return raw.strip().lower() in _TRUTHY


_ENVIRONMENT: Mapping[str, _EnvOverride] = {
    "APPSKETCH_API_KEY": _EnvOverride("api_key", str),
    "APPSKETCH_BASE_URL": _EnvOverride("base_url", str),
    "APPSKETCH_MODEL": _EnvOverride("model", str),
    "APPSKETCH_IMAGE_MODEL": _EnvOverride("image_model", str),
    "APPSKETCH_IMAGE_SIZE": _EnvOverride("image_size", str),
    "APPSKETCH_ORGANIZATION": _EnvOverride("organization", str),
    "APPSKETCH_DEBUG_LOGGING": _EnvOverride("debug_logging", _parse_flag),
    "APPSKETCH_REQUEST_TIMEOUT": _EnvOverride("request_timeout", float),
    "APPSKETCH_TEMPERATURE": _EnvOverride("temperature", float),
    "APPSKETCH_MAX_RETRIES": _EnvOverride("max_retries", lambda raw: int(raw, 10)),
}


class SecretVault:
    """Symmetric encryption for the API key.

    Tokens look like ``fernet:<token>``. The key file is created on first
    use with owner-only permissions.
    """

    def __init__(self, *, key_path: Path | None = None) -> None:
        self._key_file = key_path or (_APP_DIR / "settings.key")
        self._cipher: Fernet | None = None

    @property
    def strategy(self) -> str:
        return _TOKEN_SCHEME

    @property
    def key_path(self) -> Path:
        return self._key_file

    def encrypt(self, secret: str) -> str:
        if not secret:
            return ""
        token = self._fernet().encrypt(secret.encode("utf-8"))
        return f"{_TOKEN_SCHEME}:{token.decode('ascii')}"

    def decrypt(self, token: str | None) -> str:
        """Return the clear text for ``token``.

        Values without the ``fernet:`` scheme are returned unchanged. Raises
        ``ValueError`` when the token was made with a different key.
        """

        if not token:
            return ""
        scheme, sep, body = token.partition(":")
        if scheme != _TOKEN_SCHEME or not sep or not body:
            LOGGER.warning("API key is not a %s token; using it as stored", _TOKEN_SCHEME)
            return token
        try:
            return self._fernet().decrypt(body.encode("ascii")).decode("utf-8")
        except InvalidToken as exc:
            raise ValueError("API key token does not match the vault key") from exc

    def _fernet(self) -> Fernet:
        if self._cipher is None:
            self._cipher = Fernet(self._ensure_key())
        return self._cipher

    def _ensure_key(self) -> bytes:
        if self._key_file.exists():
            return self._key_file.read_bytes().strip()
        key = Fernet.generate_key()
        _atomic_write(self._key_file, key, private=True)
        LOGGER.debug("Created settings key at %s", self._key_file)
        return key


class SettingsStore:
    """Reads and writes :class:`Settings` as JSON."""

    def __init__(self, path: Path | None = None, *, vault: SecretVault | None = None) -> None:
        self._path = path or (_APP_DIR / "settings.json")
        self._vault = vault or SecretVault(key_path=self._path.with_suffix(".key"))

    @property
    def path(self) -> Path:
        return self._path

    @property
    def vault(self) -> SecretVault:
        return self._vault

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        """Resolve settings from the file, then ``overrides``, then the environment."""

        stored = self._read()
        settings = self._decode(stored) if stored else Settings()
        LOGGER.debug("Settings resolved from %s (file present=%s)", self._path, bool(stored))
        if overrides:
            settings = _merge(settings, overrides, layer="CLI")
        return _merge(settings, _environment_values(), layer="environment")

    def save(self, settings: Settings) -> Path:
        document = asdict(settings)
        secret = document.pop("api_key", "") or ""
        token = self._vault.encrypt(secret)
        if token:
            document[_CIPHERTEXT_KEY] = token
        document["version"] = _FILE_VERSION
        text = json.dumps(document, indent=2, sort_keys=True)
        _atomic_write(self._path, text.encode("utf-8"))
        LOGGER.debug("Settings written to %s", self._path)
        return self._path

    def _decode(self, stored: Dict[str, Any]) -> Settings:
        token = stored.get(_CIPHERTEXT_KEY)
        allowed = _field_names(exclude=frozenset({"api_key"}))
        known = {name: value for name, value in stored.items() if name in allowed}
        try:
            settings = Settings(**known)
        except TypeError as exc:
            LOGGER.warning("Ignoring malformed settings file %s: %s", self._path, exc)
            settings = Settings()
        if not token:
            return settings
        try:
            return replace(settings, api_key=self._vault.decrypt(token))
        except ValueError as exc:
            LOGGER.warning("Could not decrypt the stored API key: %s", exc)
            return settings

    def _read(self) -> Dict[str, Any]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON (%s); using defaults", self._path, exc)
            return {}
        return parsed if isinstance(parsed, dict) else {}


def _merge(settings: Settings, values: Mapping[str, Any], *, layer: str) -> Settings:
    allowed = _field_names()
    accepted = {name: value for name, value in values.items() if name in allowed and value is not None}
    if not accepted:
        return settings
    LOGGER.debug("Applying %s overrides for %s", layer, ", ".join(sorted(accepted)))
    return replace(settings, **accepted)


def _environment_values() -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for variable, override in _ENVIRONMENT.items():
        raw = os.environ.get(variable)
        if raw is None:
            continue
        try:
            values[override.field_name] = override.parse(raw)
        except ValueError:
            LOGGER.warning("Ignoring %s=%r: not a valid %s", variable, raw, override.field_name)
    return values


def redact_secret(value: str) -> str:
    """Mask all but the first and last two characters of ``value``."""

    secret = (value or "").strip()
    if len(secret) <= 4:
        return "*" * len(secret)
    hidden = "*" * (len(secret) - 4)
    return secret[:2] + hidden + secret[-2:]
