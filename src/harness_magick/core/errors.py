class ConversionError(Exception):
    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


class ProbeError(ConversionError):
    def __init__(self, message: str):
        super().__init__("PROBE_FAILED", message)


class ConversionTimeout(ConversionError):
    def __init__(self, message: str = "Conversion over timeout"):
        super().__init__("TIMEOUT", message)


class ExecutionError(ConversionError):
    def __init__(self, message: str, code: str = "EXECUTION_FAILED"):
        super().__init__(code, message)


class UnsupportedFormatError(ConversionError):
    def __init__(self, message: str):
        super().__init__("UNSUPPORTED_FORMAT", message)


class LockError(ConversionError):
    def __init__(self, message: str):
        super().__init__("LOCKED", message)
