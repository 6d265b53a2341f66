class WeatherCheckError(Exception):
    """Base class for errors that abort a run."""


class ConfigurationError(WeatherCheckError):
    pass


class FetchError(WeatherCheckError):
    pass


class FeedParseError(WeatherCheckError):
    pass
