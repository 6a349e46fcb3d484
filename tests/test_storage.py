"""Tests for the key-value storage backends."""

import pytest

from expense_tracker.services.storage import InMemoryStorage, JsonFileStorage


class TestInMemoryStorage:
    """Tests for InMemoryStorage."""

    def test_get_set_remove(self):
        """Test basic blob operations."""
        storage = InMemoryStorage()
        assert storage.get("expenses") is None
        assert storage.set("expenses", "[]")
        assert storage.get("expenses") == "[]"
        assert storage.keys() == ["expenses"]
        assert storage.remove("expenses") is True
        assert storage.remove("expenses") is False

    def test_capacity_refuses_write(self):
        """Test that an oversized write is refused and nothing changes."""
        storage = InMemoryStorage(capacity_bytes=10)
        assert storage.set("a", "12345")
        assert not storage.set("b", "123456")
        assert storage.get("b") is None

    def test_replacing_a_key_frees_its_space(self):
        """Test that the blob being replaced does not count against capacity."""
        storage = InMemoryStorage(capacity_bytes=10)
        assert storage.set("a", "1234567890")
        assert storage.set("a", "0987654321")

    def test_capacity_counts_utf8_bytes(self):
        """Test that size is measured in encoded bytes."""
        storage = InMemoryStorage(capacity_bytes=4)
        assert not storage.set("a", "€€")


class TestJsonFileStorage:
    """Tests for JsonFileStorage."""

    def test_round_trip(self, tmp_path):
        """Test that blobs land in one file per key."""
        storage = JsonFileStorage(tmp_path / "data")
        assert storage.get("expenses") is None
        assert storage.set("expenses", '[{"note": "café"}]')
        assert (tmp_path / "data" / "expenses.json").read_text(encoding="utf-8") == '[{"note": "café"}]'
        assert JsonFileStorage(tmp_path / "data").get("expenses") == '[{"note": "café"}]'

    def test_overwrite_leaves_no_temp_files(self, tmp_path):
        """Test atomic replacement."""
        storage = JsonFileStorage(tmp_path)
        storage.set("settings", "{}")
        storage.set("settings", '{"version": 2}')
        assert sorted(path.name for path in tmp_path.iterdir()) == ["settings.json"]
        assert storage.get("settings") == '{"version": 2}'

    def test_capacity(self, tmp_path):
        """Test the total size limit across files."""
        storage = JsonFileStorage(tmp_path, capacity_bytes=10)
        assert storage.set("a", "123456")
        assert not storage.set("b", "123456")
        assert storage.set("a", "1234567890")

    def test_remove(self, tmp_path):
        """Test deleting a blob."""
        storage = JsonFileStorage(tmp_path)
        storage.set("budgets", "[]")
        assert storage.remove("budgets") is True
        assert storage.remove("budgets") is False
        assert storage.get("budgets") is None

    @pytest.mark.parametrize("key", ["../escape", "a/b", "", "with space"])
    def test_invalid_keys(self, tmp_path, key):
        """Test that keys cannot address paths outside the directory."""
        with pytest.raises(ValueError):
            JsonFileStorage(tmp_path).get(key)
