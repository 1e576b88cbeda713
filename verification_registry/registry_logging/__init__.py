"""
Structured logging for the verification registry.

Modules log through get_logger(__name__); caller_context() scopes the caller
identity onto every record of one call.
"""

from verification_registry.registry_logging.logger import caller_context, configure_logging, get_logger

__all__ = ["caller_context", "configure_logging", "get_logger"]
