# =============================================================================
# core/errors.py - Migration error hierarchy
# =============================================================================


class MigrationError(Exception):
    """Base class for all migration errors"""
    exit_code = 1


class ToolNotFoundError(MigrationError):
    """A required command-line tool could not be located"""

    def __init__(self, tool: str):
        super().__init__(f"Required tool not found: {tool}")
        self.tool = tool


class EnvironmentProbeError(MigrationError):
    """The host environment could not be probed"""
    exit_code = 2


class MigrationAbort(MigrationError):
    """Fatal condition that halts the whole run"""

    def __init__(self, username: str, check: str, detail: str):
        super().__init__(f"[{username}] {check} failed: {detail}")
        self.username = username
        self.check = check
        self.detail = detail
        # Partially filled ConversionResult of the aborting account
        self.result = None


class IntegrityViolation(MigrationAbort):
    """Primary group id would resolve to the root group"""

    def __init__(self, username: str, detail: str):
        super().__init__(username, "group id safety check", detail)


class VerificationFailure(MigrationAbort):
    """Account still reports as domain backed after conversion"""

    def __init__(self, username: str, detail: str):
        super().__init__(username, "post-conversion verification", detail)
