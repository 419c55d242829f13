"""
Error types for the monitor.

StartupError (and ConnectionSetupError) terminate the process.
StepFailedError is recoverable: the scheduler logs it and moves to the next cluster.
"""


class MonitorError(Exception):
    pass


class StartupError(MonitorError):
    def __init__(self, stage: str, reason: str):
        self.stage = stage
        self.reason = reason
        super().__init__(f"{stage} failed at startup: {reason}")


class ConnectionSetupError(StartupError):
    def __init__(self, store: str, reason: str):
        self.store = store
        super().__init__(f"{store}_database", reason)


class StepFailedError(MonitorError):
    def __init__(self, step: str, cluster: str, reason: str):
        self.step = step
        self.cluster = cluster
        self.reason = reason
        super().__init__(f"{step} failed for cluster {cluster}: {reason}")
