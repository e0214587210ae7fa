"""Loader schedules."""

from dataclasses import dataclass, field

from seedbed.core.exception import ConfigError
from seedbed.loaders.protocol import ChangeSignal

DEFAULT_DEBOUNCE_SECONDS = 0.5


@dataclass(frozen=True)
class IntervalSchedule:
    """Re-run the producer every ``seconds`` until cancelled."""

    seconds: float

    def __post_init__(self):
        if self.seconds <= 0:
            raise ConfigError(f"Interval must be positive, got {self.seconds}")


@dataclass(frozen=True)
class OnceSchedule:
    """Run the producer once, then finish."""


@dataclass(frozen=True)
class SignalSchedule:
    """Run the producer on start and after each debounced change signal.

    Signals arriving within ``debounce_seconds`` of each other collapse
    into a single re-scan.
    """

    signal: ChangeSignal = field(compare=False)
    debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS

    def __post_init__(self):
        if self.debounce_seconds < 0:
            raise ConfigError(
                f"Debounce window must not be negative, got {self.debounce_seconds}"
            )
        if not isinstance(self.signal, ChangeSignal):
            raise ConfigError("Signal schedule requires a change signal")


Schedule = IntervalSchedule | OnceSchedule | SignalSchedule


def schedule_from_config(
    mode: str,
    interval_seconds: float | None = None,
    signal: ChangeSignal | None = None,
    debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
) -> Schedule:
    """Map a configured mode to a schedule.

    Raises:
        ConfigError: For unknown modes or missing parameters.
    """
    match mode:
        case "interval":
            if interval_seconds is None:
                raise ConfigError("Interval mode requires interval_seconds")
            return IntervalSchedule(interval_seconds)

        case "once":
            return OnceSchedule()

        case "on_signal":
            if signal is None:
                raise ConfigError("Signal mode requires a change signal")
            return SignalSchedule(signal, debounce_seconds)

        case _:
            raise ConfigError(f"Unknown loader mode: {mode}")
