"""Custom exceptions for clio-ai."""


class ResponderError(Exception):
    """Raised when the model provider cannot produce a completion."""
    pass


class ProviderConnectionError(ResponderError):
    """Raised when unable to reach the model provider."""
    pass


class ProviderResponseError(ResponderError):
    """Raised when the provider answers with an error or an unusable payload."""
    pass


class PromptTemplateError(Exception):
    """Raised when a prompt template fails to render."""
    pass


class ConfigError(Exception):
    """Raised when configuration is invalid or missing."""
    pass
