"""Custom exceptions for the ffconvert conversion runtime"""

class FFConvertError(Exception):
    """Base exception for all ffconvert errors"""
    def __init__(self, message: str, module: str = None):
        self.message = message
        self.module = module or "unknown"
        super().__init__(f"[{self.module}] {self.message}")

class InitializationError(FFConvertError):
    """Engine image failed to boot.

    Fatal for the affected variant until the gateway is discarded and
    recreated. The other variant is unaffected.
    """
    def __init__(self, message: str, module: str = None, variant=None):
        self.variant = variant
        super().__init__(f"Initialization error: {message}", module)

class ConversionFailure(FFConvertError):
    """A conversion job produced no output or raised during invocation"""

class EngineInvocationError(ConversionFailure):
    """The engine returned a non-zero status"""
    def __init__(self, message: str, module: str = None, exit_code: int = 0, output: str = ""):
        self.exit_code = exit_code
        self.output = output
        super().__init__(message, module)

class EngineAbortedError(ConversionFailure):
    """The engine itself died and cannot serve further jobs"""

class DecodingError(FFConvertError):
    """Engine-reported value outside the known symbolic set"""
    def __init__(self, message: str, module: str = None):
        super().__init__(f"Decoding error: {message}", module)

class BoundaryError(FFConvertError):
    """Malformed or missing request fields"""
    def __init__(self, message: str, module: str = "gateway"):
        super().__init__(f"Invalid request: {message}", module)

class ListingError(FFConvertError):
    """A capability listing could not be produced by the engine"""
    def __init__(self, message: str, module: str = None):
        super().__init__(f"Listing error: {message}", module)
