from __future__ import annotations

from hapbench.util import ReadableException


class HapbenchError(ReadableException):
    pass


class InvalidParameter(HapbenchError, ValueError):
    pass


class FixtureWriteFailure(HapbenchError):
    def __init__(self, message, artifact, path, cause=None):
        self.artifact = artifact
        self.path = path
        super().__init__(message, cause)


class StrategyUnsupported(HapbenchError):
    def __init__(self, message, strategy_name, input_label=None, cause=None):
        self.strategy_name = strategy_name
        self.input_label = input_label
        super().__init__(message, cause)


class Incomplete(HapbenchError):
    def __init__(self, message, pairings, cause=None):
        self.pairings = tuple(pairings)
        super().__init__(message, cause)
