from importlib import metadata

from location_relay import versioning
from location_relay.versioning import UNKNOWN_VERSION, read_version


def test_bundled_version_file_is_read():
    assert read_version() == "0.1.0"


def test_version_file_contents_win(tmp_path):
    target = tmp_path / "VERSION.txt"
    target.write_text("2.3.4\n", encoding="utf-8")

    assert read_version(target) == "2.3.4"


def test_missing_file_falls_back_to_distribution_metadata(tmp_path, monkeypatch):
    monkeypatch.setattr(versioning.metadata, "version", lambda name: f"{name}-9.9.9")

    assert read_version(tmp_path / "absent.txt") == "location-relay-9.9.9"


def test_unknown_when_nothing_is_available(tmp_path, monkeypatch):
    def not_installed(name):
        raise metadata.PackageNotFoundError(name)

    monkeypatch.setattr(versioning.metadata, "version", not_installed)
    (tmp_path / "VERSION.txt").write_text("  \n", encoding="utf-8")

    assert read_version(tmp_path / "VERSION.txt") == UNKNOWN_VERSION
