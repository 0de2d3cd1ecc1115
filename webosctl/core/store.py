"""Persistence of pairing keys and MAC addresses per TV address."""

from __future__ import annotations

import json
import logging
import os
from importlib import resources
from pathlib import Path
from typing import Any, Protocol

import yaml
from jsonschema import ValidationError, validators

from webosctl.core.errors import CredentialStoreError
from webosctl.core.model import DeviceRecord

LOGGER = logging.getLogger(__name__)


class CredentialStore(Protocol):
    def load(self, address: str) -> DeviceRecord:
        """Return the persisted record for an address (empty if unknown)."""

    def save_client_key(self, address: str, client_key: str) -> None:
        """Persist the pairing key issued by the TV at `address`."""

    def save_mac(self, address: str, mac: str) -> None:
        """Persist the hardware address used to wake the TV at `address`."""


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise CredentialStoreError(f"Duplicate key '{key}' in device store")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


def _load_schema_validator() -> Any:
    schema_text = resources.files("webosctl.schemas").joinpath("devices.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def default_store_path() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "webosctl/devices.yaml"


class YAMLCredentialStore:
    """Device records kept in a single YAML file under the user's config dir.

    The file is re-read on every access, so a key written by the background
    listener is visible to a store created later in the same process.
    """

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or default_store_path()

    def load(self, address: str) -> DeviceRecord:
        entry = self._read().get(address, {})
        return DeviceRecord(
            address=address,
            mac=entry.get("mac"),
            client_key=entry.get("client_key"),
        )

    def addresses(self) -> list[str]:
        return sorted(self._read())

    def save_client_key(self, address: str, client_key: str) -> None:
        self._update(address, "client_key", client_key)

    def save_mac(self, address: str, mac: str) -> None:
        self._update(address, "mac", mac)

    def _update(self, address: str, field: str, value: str) -> None:
        devices = self._read()
        entry = devices.setdefault(address, {})
        if entry.get(field) == value:
            LOGGER.debug("Store already holds %s for %s", field, address)
            return
        entry[field] = value
        self._write(devices)

    def _read(self) -> dict[str, dict[str, str]]:
        if not self.path.exists():
            return {}

        try:
            content = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise CredentialStoreError(f"Could not read device store {self.path}: {exc}") from exc

        try:
            loaded = yaml.load(content, Loader=UniqueKeyLoader)
        except yaml.YAMLError as exc:
            raise CredentialStoreError(f"Invalid YAML in {self.path}: {exc}") from exc

        if loaded is None:
            return {}
        try:
            _load_schema_validator().validate(loaded)
        except ValidationError as exc:
            path = ".".join(str(p) for p in exc.path)
            where = f" ({path})" if path else ""
            raise CredentialStoreError(
                f"Schema validation failed for {self.path}{where}: {exc.message}"
            ) from exc

        devices = loaded.get("devices") or {}
        return {str(address): dict(entry or {}) for address, entry in devices.items()}

    def _write(self, devices: dict[str, dict[str, str]]) -> None:
        document = {"devices": {address: devices[address] for address in sorted(devices)}}
        try:
            _load_schema_validator().validate(document)
        except ValidationError as exc:
            raise CredentialStoreError(f"Refusing to write invalid device entry: {exc.message}") from exc
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                yaml.safe_dump(document, handle, default_flow_style=False, sort_keys=True)
        except OSError as exc:
            raise CredentialStoreError(f"Could not write device store {self.path}: {exc}") from exc
        LOGGER.debug("Wrote device store %s", self.path)
