class NitcatError(Exception):
    """Base class for errors raised by the dashboard services."""


class GateModeError(NitcatError):
    """A gate was toggled by hand while the gates are under automatic control."""


class ThresholdError(NitcatError):
    """A threshold band whose minimum is above its maximum."""
