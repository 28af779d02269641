"""Essential configuration tests."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from discdup.config import DiscdupConfig, DriveSlot, create_sample_config, load_config


class TestConfigBasics:
    """Test essential configuration functionality."""

    def test_default_config(self):
        """Test default configuration values."""
        config = DiscdupConfig()

        assert [slot.device for slot in config.drives] == ["/dev/sr0"]
        assert config.naming_scheme == "counter"
        assert config.counter_start == 101
        assert config.poll_interval == 5
        assert config.api_port == 3000
        assert config.ntfy_topic is None

    def test_default_paths_are_expanded(self):
        config = DiscdupConfig()

        assert "~" not in str(config.destination_root)
        assert config.destination_root.is_absolute()

    def test_config_with_custom_paths(self, tmp_path):
        """Test configuration with custom directory paths."""
        config = DiscdupConfig(
            destination_root=tmp_path / "copies",
            log_file=tmp_path / "copy-log.txt",
            log_dir=tmp_path / "logs",
        )

        assert config.destination_root == tmp_path / "copies"
        assert config.log_file == tmp_path / "copy-log.txt"
        assert config.log_dir == tmp_path / "logs"

    def test_directory_creation(self, tmp_path):
        """Test configuration ensures directories exist."""
        config = DiscdupConfig(
            destination_root=tmp_path / "copies",
            log_file=tmp_path / "nested" / "copy-log.txt",
            log_dir=tmp_path / "logs",
        )

        config.ensure_directories()

        assert config.destination_root.is_dir()
        assert config.log_file.parent.is_dir()
        assert config.log_dir.is_dir()

    def test_tilde_expansion(self):
        config = DiscdupConfig(destination_root="~/discs")

        assert config.destination_root == Path.home() / "discs"


class TestDrives:
    """Drive slot configuration."""

    def test_plain_strings_become_slots(self):
        config = DiscdupConfig(drives=["I:", "J:"])

        assert config.drives == (DriveSlot(device="I:"), DriveSlot(device="J:"))

    def test_single_string(self):
        config = DiscdupConfig(drives="/dev/sr1")

        assert [slot.device for slot in config.drives] == ["/dev/sr1"]

    def test_tables_with_mount_points(self):
        config = DiscdupConfig(
            drives=[{"device": "/dev/sr0", "mount_point": "/media/cdrom0"}],
        )

        assert config.drives[0].mount_point == Path("/media/cdrom0")
        assert config.drives[0].source_root == "/media/cdrom0"

    def test_order_is_preserved(self):
        config = DiscdupConfig(drives=["K:", "I:", "J:"])

        assert [str(slot) for slot in config.drives] == ["K:", "I:", "J:"]

    def test_empty_drive_list_rejected(self):
        with pytest.raises(ValidationError, match="At least one drive"):
            DiscdupConfig(drives=[])

    def test_duplicate_drives_rejected(self):
        with pytest.raises(ValidationError, match="Duplicate drives"):
            DiscdupConfig(drives=["I:", "i:"])

    def test_blank_device_rejected(self):
        with pytest.raises(ValidationError):
            DiscdupConfig(drives=["  "])


class TestDriveSlot:
    """Source root resolution for a slot."""

    def test_drive_letter_source_root(self):
        slot = DriveSlot(device="I:")

        assert slot.is_drive_letter
        assert slot.source_root == "I:\\"

    def test_unmounted_device_path_has_no_source_root(self):
        slot = DriveSlot(device="/dev/sr0")

        assert not slot.is_drive_letter
        assert slot.source_root is None

    def test_mount_point_wins(self):
        slot = DriveSlot(device="I:", mount_point="/mnt/i")

        assert slot.source_root == "/mnt/i"

    def test_str_is_device(self):
        assert str(DriveSlot(device="J:")) == "J:"


class TestValidation:
    """Field validation."""

    def test_naming_scheme_normalized(self):
        assert DiscdupConfig(naming_scheme=" LABEL ").naming_scheme == "label"

    def test_unknown_naming_scheme_rejected(self):
        with pytest.raises(ValidationError, match="Unknown naming scheme"):
            DiscdupConfig(naming_scheme="random")

    @pytest.mark.parametrize("field", ["poll_interval", "copy_retries", "copy_retry_wait"])
    def test_negative_values_rejected(self, field):
        with pytest.raises(ValidationError, match="must not be negative"):
            DiscdupConfig(**{field: -1})


class TestLoadConfig:
    """Configuration file loading."""

    def test_load_from_file(self, tmp_path):
        config_file = tmp_path / "config.toml"
        config_file.write_text(
            f'destination_root = "{tmp_path / "copies"}"\n'
            'base_name = "CD_ARCHIVE_"\n'
            "poll_interval = 2\n"
            "\n"
            "[[drives]]\n"
            'device = "I:"\n'
            "\n"
            "[[drives]]\n"
            'device = "J:"\n',
        )

        config = load_config(config_file)

        assert [str(slot) for slot in config.drives] == ["I:", "J:"]
        assert config.base_name == "CD_ARCHIVE_"
        assert config.poll_interval == 2
        assert config.destination_root == tmp_path / "copies"

    def test_missing_file_uses_defaults(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path))
        monkeypatch.chdir(tmp_path)

        config = load_config(tmp_path / "absent.toml")

        assert config.counter_start == 101

    def test_discovers_file_in_working_directory(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path / "home"))
        monkeypatch.chdir(tmp_path)
        (tmp_path / "discdup.toml").write_text('drives = ["X:"]\n')

        config = load_config()

        assert [str(slot) for slot in config.drives] == ["X:"]

    def test_sample_config_loads(self, tmp_path):
        path = tmp_path / "sub" / "config.toml"

        create_sample_config(path)
        config = load_config(path)

        assert path.exists()
        assert [str(slot) for slot in config.drives] == ["/dev/sr0"]
        assert config.naming_scheme == "counter"
