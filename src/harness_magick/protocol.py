PROTOCOL_VERSION = "1"

ERROR_CODES = {
    "ERROR": 1,
    "INVALID_INPUT": 2,
    "NOT_FOUND": 3,
    "UNSUPPORTED_FORMAT": 4,
    "MAGICK_NOT_FOUND": 5,
    "PROBE_FAILED": 6,
    "EXECUTION_FAILED": 7,
    "TIMEOUT": 8,
    "LOCKED": 9,
}
