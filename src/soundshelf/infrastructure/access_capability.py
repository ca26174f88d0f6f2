"""Local access capabilities.

Hey future me - on a plain POSIX system there is no OS bookmark API, so the capability is a
small JSON document: the url plus the (device, inode) pair of the file at issue time.
resolve() re-validates that the same file is still there and readable. If the file was
replaced (new inode), deleted or locked down, the capability is "revoked" and resolve raises
AccessCapabilityError - Shelf.activate() skips those entries.
"""

import json
import logging
import os

from soundshelf.domain.exceptions import AccessCapabilityError
from soundshelf.domain.ports.access import IAccessCapabilityProvider
from soundshelf.domain.value_objects.locators import normalize_url, to_path

logger = logging.getLogger(__name__)

CAPABILITY_VERSION = 1


class LocalAccessCapabilityProvider(IAccessCapabilityProvider):
    """Capabilities backed by file identity (device + inode)."""

    def issue(self, url: str) -> bytes:
        """Capture access to url.

        Remote urls get a capability carrying only the url.

        Raises:
            AccessCapabilityError: If a local url is missing or unreadable
        """
        url = normalize_url(url)
        document: dict[str, object] = {"v": CAPABILITY_VERSION, "url": url}
        path = to_path(url)
        if path is not None:
            try:
                stat = path.stat()
            except OSError as e:
                raise AccessCapabilityError(url) from e
            if not os.access(path, os.R_OK):
                raise AccessCapabilityError(url)
            document["dev"] = stat.st_dev
            document["ino"] = stat.st_ino
        return json.dumps(document, separators=(",", ":")).encode("utf-8")

    def resolve(self, capability: bytes) -> str:
        """Re-validate capability.

        Returns:
            The url the capability grants access to

        Raises:
            AccessCapabilityError: If the capability is malformed or the file
                changed identity, vanished or became unreadable
        """
        try:
            document = json.loads(capability.decode("utf-8"))
            url = str(document["url"])
        except (UnicodeDecodeError, ValueError, KeyError, TypeError) as e:
            raise AccessCapabilityError("<capability>", "Malformed access capability") from e

        path = to_path(url)
        if path is None:
            return url
        try:
            stat = path.stat()
        except OSError as e:
            raise AccessCapabilityError(url) from e
        if (document.get("dev"), document.get("ino")) != (stat.st_dev, stat.st_ino):
            logger.debug("Capability for %s revoked: file identity changed", url)
            raise AccessCapabilityError(url)
        if not os.access(path, os.R_OK):
            raise AccessCapabilityError(url)
        return url
