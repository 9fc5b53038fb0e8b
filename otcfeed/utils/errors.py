# otcfeed/utils/errors.py
class ConfigValidationError(ValueError):
    """
    Raised when a symbol configuration would make the price process unstable
    (GARCH non-stationary, non-positive pip size, thresholds outside [0, 1]).
    """


class UnknownSymbolError(KeyError):
    """
    Raised by administrative overrides that target a symbol which was never
    initialized. Tick generation itself never raises this.
    """
