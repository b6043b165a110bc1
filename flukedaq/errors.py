"""Exception hierarchy raised by the datasource."""
from __future__ import annotations


class DatasourceError(RuntimeError):
    """Base class for every error raised by :mod:`flukedaq`."""


class StateConflictError(DatasourceError):
    """The caller asked for a transition the session state does not allow."""


class AlreadyRecordingError(StateConflictError):
    def __init__(self) -> None:
        super().__init__("already recording")


class AlreadyStoppedRecordingError(StateConflictError):
    def __init__(self) -> None:
        super().__init__("already stopped recording")


class DatasourceClosedError(StateConflictError):
    def __init__(self) -> None:
        super().__init__("datasource has been shut down")


class ConfigurationError(DatasourceError, ValueError):
    """Invalid or incomplete configuration detected at call time."""


class BlankSinkTargetError(ConfigurationError):
    def __init__(self) -> None:
        super().__init__("influx organization or bucket cannot be blank")


class ResolutionError(DatasourceError):
    """A sink organization or bucket could not be resolved."""


class InvalidOrganizationError(ResolutionError):
    def __init__(self, name: str) -> None:
        super().__init__(f"invalid influx organization '{name}'")
        self.name = name


class InvalidBucketError(ResolutionError):
    def __init__(self, name: str, reason: str = "") -> None:
        message = f"invalid influx bucket '{name}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.name = name


class DeviceError(DatasourceError):
    """A read or write on the device connection failed."""


class SerializationError(DatasourceError):
    """A frame could not be encoded to its JSON wire form."""


class SinkWriteError(DatasourceError):
    """Points accepted by the sink could not be delivered to the backend."""
