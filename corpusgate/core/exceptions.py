"""
corpusgate/core/exceptions.py

corpusgate exception hierarchy.

All exceptions inherit from CorpusGateError for easy catching.
Errors that can end an evaluation carry a ``reason`` matching the
Reason recorded on the resulting DENY decision.
"""


class CorpusGateError(Exception):
    """Base exception for all corpusgate errors"""

    reason = None

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ValidationError(CorpusGateError):
    """Raised when data validation fails"""
    pass


class ConfigError(CorpusGateError):
    """Raised when configuration is missing or malformed"""
    pass


class PolicyError(CorpusGateError):
    """Raised when a rule table is malformed or cannot be published"""
    pass


class AuditLogError(CorpusGateError):
    """Raised when audit log operations fail"""
    pass


class UnclassifiedContent(ValidationError):
    """Raised when a content item has no recognized category"""
    reason = "UnclassifiedContent"


class MissingRule(PolicyError):
    """Raised when the rule table has no entry for (category, license_state)"""
    reason = "MissingRule"


class InvalidTransition(PolicyError):
    """Raised when a license state change skips or reverses the state machine"""
    reason = "InvalidTransition"


class AuditWriteFailure(AuditLogError):
    """Raised when an audit entry cannot be durably appended"""
    reason = "AuditWriteFailure"
