"""
Exception types raised by the intentui core
"""


class IntentUIError(Exception):
    """Base class for intentui errors"""


class OrchestratorBusyError(IntentUIError):
    """Raised when an intent is submitted while another one is still in flight"""


class ComponentRegistrationError(IntentUIError):
    """Raised when a component type cannot be registered"""


class PolicyError(IntentUIError):
    """Raised when the decision policy fails or returns a malformed response"""
