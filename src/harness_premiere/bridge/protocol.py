PROTOCOL_VERSION = "1.0"

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 17321
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_POLL_INTERVAL_SECONDS = 0.35

TRANSPORT_HTTP = "http"
TRANSPORT_UXP = "uxp"
TRANSPORTS = (TRANSPORT_HTTP, TRANSPORT_UXP)

AUTH_HEADER = "x-auth-token"
COMMAND_PATH = "/command"

ERROR_CODES = {
    "ERROR": 1,
    "INVALID_INPUT": 2,
    "VALIDATION_FAILED": 3,
    "PARSE_ERROR": 4,
    "BOUNDS_ERROR": 5,
    "NOT_FOUND": 6,
    "BRIDGE_UNAVAILABLE": 7,
    "UNAUTHORIZED": 8,
    "TIMEOUT": 9,
    "HOST_ERROR": 10,
}

# Host-side command names understood by the editor panel.
HOST_COMMANDS = (
    "ping",
    "getSequenceInfo",
    "sequenceInventory",
    "listSequences",
    "openSequence",
    "duplicateSequence",
    "reloadProject",
    "saveProject",
    "setPlayheadTimecode",
    "setInOutPoints",
    "razorAtTimecode",
    "extractRange",
    "rippleDeleteSelection",
    "addMarkers",
    "setTrackState",
    "findProjectItem",
    "transcriptJSON",
)
