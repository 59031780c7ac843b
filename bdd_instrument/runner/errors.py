class InstrumentError(RuntimeError):
    pass


class ConfigurationError(InstrumentError):
    """Raised before any unit runs: no suite configuration, no features, bad options."""


class CoverageDumpError(InstrumentError):
    pass
