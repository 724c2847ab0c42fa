"""File permission probe used by the Composer checks."""

import logging

from preflight.probe import CapabilityProbe

logger = logging.getLogger(__name__)


class FilePermissionProbe:
    """Decides whether the PHP process can be trusted to create files."""

    SAFE_MODE_SETTING = 'safe_mode'
    INTROSPECTION_FUNCTION = 'posix_getpwuid'

    def __init__(self, probe: CapabilityProbe):
        self.probe = probe

    def has_safe_mode(self) -> bool:
        return self.probe.config_flag(self.SAFE_MODE_SETTING)

    def is_introspection_disabled(self) -> bool:
        return self.probe.function_disabled(self.INTROSPECTION_FUNCTION)

    def can_create_folder(self) -> bool:
        return self.probe.create_temp_folder()

    def can_create_file(self) -> bool:
        return self.probe.create_temp_file()

    def check_file_permissions(self) -> bool:
        """
        Check whether file creation is blocked.

        Stops at the first blocking condition, so the filesystem is only
        touched when the configuration allows it.

        Returns:
            True if file creation is blocked, False if it may proceed
        """
        if self.has_safe_mode():
            logger.debug("File creation blocked: safe_mode is enabled")
            return True

        # Without user introspection we cannot tell who owns created files
        if self.is_introspection_disabled():
            logger.debug("File creation blocked: %s is disabled", self.INTROSPECTION_FUNCTION)
            return True

        if not self.can_create_folder():
            logger.debug("File creation blocked: cannot create a folder")
            return True

        if not self.can_create_file():
            logger.debug("File creation blocked: cannot create a file")
            return True

        return False
