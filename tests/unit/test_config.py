"""Unit tests for TableConfig and LockConfig."""

import pytest

from kvcoord.config import LockConfig, TableConfig
from kvcoord.types import ItemKey


class TestTableConfig:
    """Tests for TableConfig."""

    def test_defaults(self) -> None:
        """Test default values match the original table layout."""
        config = TableConfig()

        assert config.name == "BitsAndBobs"
        assert config.prefix == ""
        assert config.full_name == "BitsAndBobs"
        assert config.hash_key_name == "PK"
        assert config.range_key_name == "SK"
        assert config.version_attribute == "Version"

    def test_prefix_applied_to_full_name(self) -> None:
        """Test the prefix is prepended to the table name."""
        assert TableConfig(prefix="staging-").full_name == "staging-BitsAndBobs"

    def test_key_attributes(self) -> None:
        """Test a key maps onto the configured attribute names."""
        config = TableConfig(hash_key_name="HK", range_key_name="RK")

        assert config.key_attributes(ItemKey("auction#42", "Auction")) == {
            "HK": "auction#42",
            "RK": "Auction",
        }

    def test_frozen(self) -> None:
        """Test configuration cannot be changed after construction."""
        config = TableConfig()
        with pytest.raises(AttributeError):
            config.prefix = "other-"  # type: ignore[misc]

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"name": ""},
            {"hash_key_name": "bad name"},
            {"range_key_name": "1SK"},
            {"version_attribute": ""},
            {"hash_key_name": "K", "range_key_name": "K"},
            {"version_attribute": "PK"},
        ],
    )
    def test_invalid_values_rejected(self, kwargs: dict[str, str]) -> None:
        """Test __post_init__ validation."""
        with pytest.raises(ValueError):
            TableConfig(**kwargs)

    def test_from_env(self) -> None:
        """Test building a config from environment variables."""
        config = TableConfig.from_env(
            {"KVCOORD_TABLE_PREFIX": "prod-", "KVCOORD_TABLE_NAME": "Market"}
        )

        assert config.full_name == "prod-Market"

    def test_from_env_defaults_when_unset(self) -> None:
        """Test unset or empty variables fall back to defaults."""
        config = TableConfig.from_env({"KVCOORD_TABLE_PREFIX": ""})

        assert config == TableConfig()

    def test_from_env_custom_variable_names(self) -> None:
        """Test the variable names can be overridden."""
        config = TableConfig.from_env({"APP_PREFIX": "dev-"}, prefix_var="APP_PREFIX")

        assert config.prefix == "dev-"

    def test_from_env_reads_os_environ(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test os.environ is used when no mapping is given."""
        monkeypatch.setenv("KVCOORD_TABLE_PREFIX", "ci-")
        monkeypatch.delenv("KVCOORD_TABLE_NAME", raising=False)

        assert TableConfig.from_env().full_name == "ci-BitsAndBobs"


class TestLockConfig:
    """Tests for LockConfig."""

    def test_defaults(self) -> None:
        """Test default lock record layout."""
        config = LockConfig()

        assert config.key_prefix == "lock#"
        assert config.range_key == "Lock"
        assert config.owner_attribute == "LockClientId"
        assert config.expiry_attribute == "LockExpiresOn"

    def test_key_for(self) -> None:
        """Test lock names map to lock record keys."""
        assert LockConfig().key_for("CompleteAuctions") == ItemKey(
            "lock#CompleteAuctions", "Lock"
        )

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"range_key": ""},
            {"owner_attribute": "owner id"},
            {"expiry_attribute": "9"},
            {"owner_attribute": "X", "expiry_attribute": "X"},
        ],
    )
    def test_invalid_values_rejected(self, kwargs: dict[str, str]) -> None:
        """Test __post_init__ validation."""
        with pytest.raises(ValueError):
            LockConfig(**kwargs)
