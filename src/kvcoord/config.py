"""
Configuration values for the lock store and version ledger.

This module provides:
- TableConfig: Physical table name and key schema shared by all components
- LockConfig: Attribute layout of lock records

Both are plain frozen values built once at process start and passed to the
constructors of KeyValueLockClient and VersionLedger.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass

from kvcoord.types import ItemKey

_ATTRIBUTE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _check_attribute_name(field: str, value: str) -> None:
    if not _ATTRIBUTE_NAME.match(value):
        raise ValueError(
            f"{field} must be a valid attribute name "
            f"(letters, digits and underscores, not starting with a digit), got {value!r}"
        )


@dataclass(frozen=True)
class TableConfig:
    """
    Table name and key schema of the single shared table.

    Attributes:
        name: Base table name
        prefix: Environment prefix prepended to the base name (e.g. "dev-")
        hash_key_name: Attribute holding the partition key
        range_key_name: Attribute holding the sort key
        version_attribute: Attribute holding the optimistic-concurrency version

    Example:
        >>> config = TableConfig(prefix="test-")
        >>> config.full_name
        'test-BitsAndBobs'
    """

    name: str = "BitsAndBobs"
    prefix: str = ""
    hash_key_name: str = "PK"
    range_key_name: str = "SK"
    version_attribute: str = "Version"

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if not self.name:
            raise ValueError("name must not be empty")

        _check_attribute_name("hash_key_name", self.hash_key_name)
        _check_attribute_name("range_key_name", self.range_key_name)
        _check_attribute_name("version_attribute", self.version_attribute)

        if self.hash_key_name == self.range_key_name:
            raise ValueError(
                f"hash_key_name and range_key_name must differ, both are {self.hash_key_name!r}"
            )
        if self.version_attribute in (self.hash_key_name, self.range_key_name):
            raise ValueError(
                f"version_attribute {self.version_attribute!r} collides with a key attribute"
            )

    @property
    def full_name(self) -> str:
        """The table name including any prefix."""
        return f"{self.prefix}{self.name}"

    def key_attributes(self, key: ItemKey) -> dict[str, str]:
        """Return the key as an attribute map using this table's key names."""
        return {self.hash_key_name: key.partition, self.range_key_name: key.sort}

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        *,
        prefix_var: str = "KVCOORD_TABLE_PREFIX",
        name_var: str = "KVCOORD_TABLE_NAME",
    ) -> TableConfig:
        """
        Build a config from environment variables.

        Unset variables fall back to the dataclass defaults.

        Args:
            environ: Mapping to read from (defaults to os.environ)
            prefix_var: Variable holding the table prefix
            name_var: Variable holding the base table name

        Returns:
            TableConfig for this process
        """
        env = os.environ if environ is None else environ
        kwargs: dict[str, str] = {}
        if env.get(name_var):
            kwargs["name"] = env[name_var]
        if env.get(prefix_var):
            kwargs["prefix"] = env[prefix_var]
        return cls(**kwargs)


@dataclass(frozen=True)
class LockConfig:
    """
    Attribute layout of lock records.

    A lock named ``n`` is stored under partition key ``key_prefix + n`` and
    sort key ``range_key``.

    Attributes:
        key_prefix: Prefix applied to lock names to form the partition key
        range_key: Sort key value shared by all lock records
        owner_attribute: Attribute holding the owner identifier
        expiry_attribute: Attribute holding the expiry (epoch milliseconds)
    """

    key_prefix: str = "lock#"
    range_key: str = "Lock"
    owner_attribute: str = "LockClientId"
    expiry_attribute: str = "LockExpiresOn"

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if not self.range_key:
            raise ValueError("range_key must not be empty")
        _check_attribute_name("owner_attribute", self.owner_attribute)
        _check_attribute_name("expiry_attribute", self.expiry_attribute)
        if self.owner_attribute == self.expiry_attribute:
            raise ValueError("owner_attribute and expiry_attribute must differ")

    def key_for(self, name: str) -> ItemKey:
        """Return the item key of the lock record for ``name``."""
        return ItemKey(partition=f"{self.key_prefix}{name}", sort=self.range_key)
