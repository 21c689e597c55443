# core/exceptions.py
from typing import Optional

class SmartCameraException(Exception):
    """Base exception for SmartCamera tracking client"""
    pass

class WebAPIError(SmartCameraException):
    """Model REST API related errors"""
    def __init__(self, message: str, status_code: Optional[int] = None, response_text: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_text = response_text

class ModelLoadError(WebAPIError):
    """Model could not be loaded on the inference server"""
    def __init__(self, model_name: str, message: str, status_code: Optional[int] = None):
        super().__init__(message, status_code=status_code)
        self.model_name = model_name

class TransportError(SmartCameraException):
    """WebSocket transport errors (connect failure, send failure, abnormal close)"""
    pass

class NotConnectedError(TransportError):
    """Send attempted while the session is not open"""
    pass

class ConnectionLostError(TransportError):
    """Reconnect attempts exhausted"""
    def __init__(self, message: str = "Connection lost", attempts: int = 0):
        super().__init__(message)
        self.attempts = attempts

class ProtocolError(SmartCameraException):
    """Server error messages and malformed payloads. Never fatal for the session."""
    def __init__(self, message: str, raw: Optional[str] = None):
        super().__init__(message)
        self.raw = raw

class FrameEncodingError(SmartCameraException):
    """Frame cannot be packed into the binary wire format"""
    pass

class FrameDecodingError(SmartCameraException):
    """Binary frame payload is truncated or malformed"""
    pass
