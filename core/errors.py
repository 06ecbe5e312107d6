# ============================================================
# nlql - Natural Language SQL Terminal
# core/errors.py - Exception hierarchy
# ============================================================


class NlqlError(Exception):
    """Base class for every error the session knows how to surface."""


class ConnectionUrlError(NlqlError):
    """A connection URL is malformed or names an unsupported database."""


class DatabaseError(NlqlError):
    """Connect, schema introspection or statement execution failed."""


class GenerationError(NlqlError):
    """The SQL generation service failed or returned nothing usable."""


class MissingCredentialError(NlqlError):
    """No API key is available for the chosen provider."""

    def __init__(self, provider_name: str, env_vars):
        self.provider_name = provider_name
        self.env_vars = tuple(env_vars)
        super().__init__(
            f"no api key for {provider_name} (set {' or '.join(self.env_vars)} or pass --api-key)"
        )
