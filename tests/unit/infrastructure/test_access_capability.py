"""Unit tests for local access capabilities."""

import os
from pathlib import Path

import pytest

from soundshelf.domain.exceptions import AccessCapabilityError
from soundshelf.domain.value_objects.locators import to_url
from soundshelf.infrastructure.access_capability import LocalAccessCapabilityProvider


class TestLocalAccessCapabilityProvider:
    """Tests for issue/resolve."""

    def test_round_trip(self, tmp_path: Path) -> None:
        """Test that an untouched file resolves to its url."""
        target = tmp_path / "album.cue"
        target.write_text("x")
        provider = LocalAccessCapabilityProvider()

        capability = provider.issue(to_url(target))

        assert provider.resolve(capability) == to_url(target)

    def test_replaced_file_is_revoked(self, tmp_path: Path) -> None:
        """Test that a file with a new identity no longer resolves."""
        target = tmp_path / "album.cue"
        target.write_text("x")
        provider = LocalAccessCapabilityProvider()
        capability = provider.issue(to_url(target))

        # Keep the old inode alive so the replacement cannot reuse it
        keep = tmp_path / "old.cue"
        os.link(target, keep)
        target.unlink()
        target.write_text("y")

        with pytest.raises(AccessCapabilityError):
            provider.resolve(capability)

    def test_deleted_file_is_revoked(self, tmp_path: Path) -> None:
        """Test that a vanished file no longer resolves."""
        target = tmp_path / "album.cue"
        target.write_text("x")
        provider = LocalAccessCapabilityProvider()
        capability = provider.issue(to_url(target))
        target.unlink()

        with pytest.raises(AccessCapabilityError):
            provider.resolve(capability)

    def test_missing_file_cannot_be_issued(self, tmp_path: Path) -> None:
        """Test issue() on a missing file."""
        with pytest.raises(AccessCapabilityError):
            LocalAccessCapabilityProvider().issue(to_url(tmp_path / "missing.cue"))

    def test_malformed_capability(self) -> None:
        """Test that garbage bytes are rejected."""
        with pytest.raises(AccessCapabilityError):
            LocalAccessCapabilityProvider().resolve(b"\xff\x00garbage")

    def test_remote_url_passes_through(self) -> None:
        """Test that remote urls carry no file identity."""
        provider = LocalAccessCapabilityProvider()
        capability = provider.issue("http://example.com/a.flac")
        assert provider.resolve(capability) == "http://example.com/a.flac"
