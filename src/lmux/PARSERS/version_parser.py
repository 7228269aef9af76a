"""
Parsers for the deployed image version.
"""
import os
import re
from typing import Optional
from ..MODELS.settings import CURRENT_LAYOUT_MAJOR, LogsSettings
from ..UTILS.console import debug

_MAJOR_PATTERN = re.compile(r'^\s*v?(\d+)')

class VersionParser:
    """
    Reads the image version from settings or from the toolkit's version file.
    """
    @staticmethod
    def parse_major(version: str) -> Optional[int]:
        """
        Extracts the major component of a version string like ``5.2.1``.

        :param version: The version string.
        :return: The major version, or None if the string does not start with one.
        """
        match = _MAJOR_PATTERN.match(version)
        if not match:
            return None
        return int(match.group(1))

    @staticmethod
    def read_version(settings: LogsSettings) -> Optional[str]:
        """
        Returns the configured version, falling back to the first line of the version file.

        An absent or unreadable version file yields None.
        """
        if settings.image_version:
            return settings.image_version.strip()
        if not os.path.exists(settings.version_file):
            return None
        try:
            with open(settings.version_file, 'r', encoding='utf-8') as f:
                first_line = f.readline()
        except (OSError, UnicodeDecodeError) as e:
            debug("lmux", f"Cannot read version file {settings.version_file}: {e}")
            return None
        return first_line.strip() or None

    @classmethod
    def detect_major(cls, settings: LogsSettings) -> int:
        """
        Major version of the deployed image. Unknown versions are treated as the current layout.
        """
        version = cls.read_version(settings)
        if version is None:
            return CURRENT_LAYOUT_MAJOR
        major = cls.parse_major(version)
        return major if major is not None else CURRENT_LAYOUT_MAJOR
