"""Exception types raised by the simulation core."""


class LaunchSimError(Exception):
    """Base class for all simulator errors."""


class InvalidConfig(LaunchSimError, ValueError):
    """Scenario configuration rejected before any computation starts."""


class InvalidInput(LaunchSimError, ValueError):
    """A pure function was called outside its domain (e.g. price <= 0)."""


class IterationLimitExceeded(LaunchSimError):
    """Multi-tick swap loop hit its iteration cap.

    Carries the partial swap result accumulated so far. The pool catches this
    and returns `partial` instead of failing the run.
    """

    def __init__(self, iterations: int, partial):
        super().__init__(f"swap stopped after {iterations} iterations")
        self.iterations = iterations
        self.partial = partial
