"""Exceptions raised by the cost engine and its collaborators."""

from datetime import datetime


class EnergyCostError(ValueError):
    """Base exception for energy cost errors."""

    pass


class InvalidWindowSpec(EnergyCostError):
    """Raised when a time window cannot be resolved from the given fields."""

    pass


class EmptyOperands(EnergyCostError):
    """Raised when an arithmetic operation receives too few values."""

    def __init__(self, message: str, required: int, received: int):
        super().__init__(message)
        self.required = required
        self.received = received


class TariffError(EnergyCostError):
    """Base exception for tariff validation errors."""

    pass


class InvalidTariff(TariffError):
    """Raised when a tariff description is structurally invalid."""

    pass


class InvalidHourSpec(TariffError):
    """Raised when a period's hours cannot be turned into [start, end) ranges."""

    def __init__(self, message: str, period: str | None = None):
        super().__init__(message)
        self.period = period


class OverlappingPeriods(TariffError):
    """Raised when two time-of-use periods claim the same local hour."""

    def __init__(self, hour: int, period: str, conflicting_period: str):
        self.hour = hour
        self.period = period
        self.conflicting_period = conflicting_period
        super().__init__(
            f"TOU overlap at hour {hour}: {period!r} conflicts with {conflicting_period!r}"
        )


class MissingFlatRate(TariffError):
    """Raised when a flat tariff has no import rate."""

    pass


class UnknownTariffType(TariffError):
    """Raised when the tariff type is neither flat nor tou."""

    def __init__(self, tariff_type: object):
        self.tariff_type = tariff_type
        super().__init__(f'Unknown tariff type "{tariff_type}". Use "flat" or "tou".')


class UnmatchedPeriod(EnergyCostError):
    """Raised when a reading's local hour is not covered by any TOU period."""

    def __init__(self, timestamp: datetime, local_hour: int, local_weekday: int, timezone: str):
        self.timestamp = timestamp
        self.local_hour = local_hour
        self.local_weekday = local_weekday
        self.timezone = timezone
        super().__init__(
            f"No TOU period matched {timestamp.isoformat()} "
            f"(local hour {local_hour}, weekday {local_weekday} in {timezone}); "
            "verify timezone and coverage."
        )


class UnknownMetric(EnergyCostError):
    """Raised when a usage query names a metric it does not support."""

    def __init__(self, metric: object, allowed: tuple[str, ...]):
        self.metric = metric
        self.allowed = allowed
        super().__init__(f"Unknown metric {metric!r}; use one of {', '.join(allowed)}")
