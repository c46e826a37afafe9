"""Error taxonomy for the persona router."""


class RouterError(Exception):
    """Base class for all routing errors."""


class InvalidInputError(RouterError):
    """Query is missing, empty or not a string."""


class CatalogError(RouterError):
    """Rule catalog data is missing or invalid."""


class HistoryUnavailableError(RouterError):
    """Usage history could not be fetched or was malformed."""


class LLMError(RouterError):
    """LLM classification failed at the transport level."""


class LLMTimeoutError(LLMError):
    """LLM classification did not answer within its timeout."""


class LLMInvalidResponseError(LLMError):
    """LLM answered with an empty or error response."""


class LLMUnavailableError(LLMError):
    """No LLM provider configured, or the provider call failed or was cancelled."""
