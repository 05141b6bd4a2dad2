# core/errors.py


class FetchError(Exception):
    """Transport-level failure while talking to a provider."""


class ProviderNotConfigured(FetchError):
    """Provider credentials/endpoints are missing from the environment."""


class ParseFailure(Exception):
    """Embedded data or markup could not be parsed by one extraction strategy."""
