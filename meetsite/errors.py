"""
Error types raised by meetsite operations.

Fatal errors propagate to the CLI, which reports them and exits non-zero.
CertificateAcquisitionFailure is caught by the deploy sequence and answered
with a self-signed fallback.
"""


class MeetSiteError(Exception):
    """Base class for all meetsite errors."""


class ConfigError(MeetSiteError):
    """Invalid configuration value."""


class MissingDependency(MeetSiteError):
    """A required external tool is not installed."""

    def __init__(self, tool: str):
        self.tool = tool
        super().__init__(f"Missing required command: {tool}")


class ConfigWriteError(MeetSiteError):
    """A configuration or certificate file could not be written."""


class ReloadError(MeetSiteError):
    """Nginx rejected the configuration or could not be reloaded."""


class CertificateAcquisitionFailure(MeetSiteError):
    """The certificate authority client failed to issue a certificate."""


class CommandError(MeetSiteError):
    """An external command exited with a non-zero status."""

    def __init__(self, argv: list[str], returncode: int, stderr: str = ""):
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr or ""
        detail = self.stderr.strip().splitlines()[-1] if self.stderr.strip() else "no output"
        super().__init__(f"{' '.join(self.argv)} exited with {returncode}: {detail}")
