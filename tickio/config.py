"""Host configuration

Configuration is a plain value passed to the host that uses it; nothing reads it
from a global. `SchedulerConfig.from_environ` is there for programs that want to
take it from `TICKIO_*` environment variables.

"""
from __future__ import annotations
from dataclasses import dataclass, fields
from tickio.exceptions import ConfigError
from tickio.host import PRIMARY_CHANNEL
import os
import typing as t

__all__ = [
    'SchedulerConfig',
]

ENVIRON_PREFIX = "TICKIO_"

@dataclass(frozen=True)
class SchedulerConfig:
    tick_interval: float = 1/66
    "Seconds between ticks"
    cpu_budget_ms: float = 25.0
    "Milliseconds of CPU time we may use per tick"
    default_channel: str = PRIMARY_CHANNEL
    max_outstanding_requests: int = 4
    http_timeout: float = 60.0
    "Seconds before an HTTP request fails"
    average_weight: float = 0.1
    "Weight of the latest tick in the moving average of CPU usage"

    def __post_init__(self) -> None:
        if not self.tick_interval > 0:
            raise ConfigError("tick_interval must be positive", self.tick_interval)
        if not self.cpu_budget_ms > 0:
            raise ConfigError("cpu_budget_ms must be positive", self.cpu_budget_ms)
        if not self.default_channel:
            raise ConfigError("default_channel must be non-empty")
        if self.max_outstanding_requests < 1:
            raise ConfigError("max_outstanding_requests must be at least 1", self.max_outstanding_requests)
        if not self.http_timeout > 0:
            raise ConfigError("http_timeout must be positive", self.http_timeout)
        if not 0 < self.average_weight <= 1:
            raise ConfigError("average_weight must be in (0, 1]", self.average_weight)

    @classmethod
    def from_environ(cls, environ: t.Optional[t.Mapping[str, str]]=None) -> SchedulerConfig:
        """Read any of our fields which are set as environment variables

        The variable for `cpu_budget_ms` is `TICKIO_CPU_BUDGET_MS`, and so on.

        """
        if environ is None:
            environ = os.environ
        kwargs: t.Dict[str, t.Any] = {}
        for field in fields(cls):
            key = ENVIRON_PREFIX + field.name.upper()
            if key not in environ:
                continue
            convert = {'float': float, 'int': int, 'str': str}[t.cast(str, field.type)]
            try:
                kwargs[field.name] = convert(environ[key])
            except ValueError as e:
                raise ConfigError(f"couldn't parse {key}", environ[key]) from e
        return cls(**kwargs)
