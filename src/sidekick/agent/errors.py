"""Exception types shared by the agent packages.

Delegation failures come in two classes. Failures the calling agent can reason
about are returned as tool error responses and never raised. Everything raised
from here is a hard failure that aborts the current tool call.
"""

from __future__ import annotations


class ConfigError(ValueError):
    """Raised when the configuration file cannot be loaded."""


class ModelBuildError(RuntimeError):
    """Raised when a model or its provider cannot be resolved."""


class PromptBuildError(RuntimeError):
    """Raised when a system prompt template fails to render."""


class ToolBuildError(RuntimeError):
    """Raised when an agent's tool set cannot be assembled."""


class SessionNotFoundError(LookupError):
    """Raised when a session id is not present in the store."""


class DelegationError(RuntimeError):
    """Hard failure of the delegation tool; propagated past the tool boundary."""


class MissingInvocationContextError(DelegationError):
    """The host runtime invoked the tool without session or message identity."""


class SessionExistsError(ValueError):
    """Raised when creating a session whose id is already taken."""
