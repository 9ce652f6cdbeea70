from __future__ import annotations


class PgTestError(Exception):
    """
    Base class for every failure raised while starting or stopping a test
    database. Carries the child process output when a process was involved.
    """

    def __init__(self, message: str, stdout: str = "", stderr: str = ""):
        super().__init__(message)
        self.message = message
        self.stdout = stdout
        self.stderr = stderr

    def attach_output(self, stdout: str, stderr: str) -> None:
        self.stdout = self.stdout or stdout
        self.stderr = self.stderr or stderr

    def __str__(self) -> str:
        if not (self.stdout or self.stderr):
            return self.message
        return f"{self.message}\nOUT: {self.stdout}\nERR: {self.stderr}"


class ProvisioningError(PgTestError):
    """
    The data or socket directory could not be created or handed over.
    """


class PrivilegeResolutionError(PgTestError):
    """
    Running as root, but there is no account to drop privileges to.
    """


class InitializationError(PgTestError):
    """
    initdb failed. ``stdout`` holds its combined output.
    """


class LaunchError(PgTestError):
    """
    The postgres server could not be found, executed, or exited early.
    """


class BootstrapError(PgTestError):
    """
    The server never became reachable or the test database could not be
    created before the retry budget ran out.
    """


class TeardownError(PgTestError):
    """
    Signalling, waiting for or disconnecting from the server failed.
    """


class LifecycleError(PgTestError):
    """
    An operation was attempted in the wrong lifecycle state.
    """
