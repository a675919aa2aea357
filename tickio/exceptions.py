class TickioError(Exception):
    "Base class for errors raised by tickio itself, rather than by the code it runs."
    pass

class SuspensionError(TickioError):
    """Something tried to suspend while not running inside an ExecutionContext.

    This is what `suspend`, `wait`, `quota` and `delay` raise when they're awaited from
    code that isn't being driven by a tickio Task, such as the host's own top-level
    code or some other coroutine runner. There's nothing above such code that could
    resume it, so this is a programming error.

    """
    pass

class ContextError(TickioError):
    "An ExecutionContext was resumed while running, while parked, or after it finished."
    pass

class RegistrationError(TickioError):
    "A periodic callback was registered twice under one name, or deregistered when absent."
    def __init__(self, channel: str, name: str, message: str) -> None:
        super().__init__(f"{message}: channel={channel!r} name={name!r}")
        self.channel = channel
        self.name = name

class ConfigError(TickioError):
    "A configuration value couldn't be parsed or was out of range."
    pass

class SimulationStalled(TickioError):
    "SimulatedHost.run_until ran out of ticks before its predicate became true."
    pass
