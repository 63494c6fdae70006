from typing import List


class LedgerError(Exception):
    """Base class for every error tied to a single ledger role."""
    def __init__(self, role: str, message: str):
        super(LedgerError, self).__init__(message)
        self.role = role


class LockTimeout(LedgerError):
    def __init__(self, role: str, timeout: float):
        super(LockTimeout, self).__init__(
            role,
            "Could not acquire lock for {} within {} seconds".format(role, timeout)
        )
        self.timeout = timeout


class LedgerStartupFailed(LedgerError):
    def __init__(self, role: str, cause: BaseException):
        super(LedgerStartupFailed, self).__init__(
            role,
            "Ledger {} failed to start: {}: {}".format(
                role, type(cause).__name__, cause
            )
        )
        self.cause = cause


class ConfigCacheCorrupt(LedgerError):
    def __init__(self, role: str, path: str, reason: str):
        super(ConfigCacheCorrupt, self).__init__(
            role,
            "Persisted config {} for {} is unusable: {}".format(path, role, reason)
        )
        self.path = path
        self.reason = reason


class DependencyUnmet(LedgerError):
    def __init__(self, role: str, dependency: str):
        super(DependencyUnmet, self).__init__(
            role,
            "{} cannot start before {} is configured".format(role, dependency)
        )
        self.dependency = dependency


class SetupFailed(Exception):
    """One or more ledger roles failed; raised once every role has settled."""
    def __init__(self, failures: List[LedgerError]):
        lines = [" - {}: {}".format(f.role, f) for f in failures]
        super(SetupFailed, self).__init__(
            "Test environment setup failed:\n" + "\n".join(lines)
        )
        self.failures = failures

    @property
    def failed_roles(self) -> List[str]:
        return [f.role for f in self.failures]
