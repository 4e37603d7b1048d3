# src/sol_gateway/utils/exceptions.py

class SolGatewayError(Exception):
    """Base exception class for Sol Gateway"""
    pass

class ConfigurationError(SolGatewayError):
    """Raised when there are issues with configuration"""
    pass

class InitializationError(SolGatewayError):
    """Raised when component initialization fails"""
    pass

class CommunicationError(SolGatewayError):
    """Raised when communication with external services fails"""
    pass

class DeviceError(SolGatewayError):
    """Raised when there are issues with device operations"""
    pass

class AuthenticationError(SolGatewayError):
    """Raised when a client presents a missing or wrong key"""
    pass

class NotFoundError(SolGatewayError):
    """Base exception for unknown registry entries"""
    pass

class ClientNotFoundError(NotFoundError):
    pass

class DeviceNotFoundError(NotFoundError):
    pass
