"""Wire protocol constants shared by the helper and the orchestrator."""

# Requests (orchestrator → helper)
METHOD_CHECK_PERMISSIONS = "checkPermissions"
METHOD_SHOW_RECORDER_OVERLAY = "showRecorderOverlay"
METHOD_HIDE_RECORDER_OVERLAY = "hideRecorderOverlay"
METHOD_SET_RECORDER_STATE = "setRecorderState"
METHOD_SHOW_MAGNIFIER = "showMagnifier"
METHOD_HIDE_MAGNIFIER = "hideMagnifier"
METHOD_EXECUTE_CLICK = "executeClick"
METHOD_EXECUTE_KEYPRESS = "executeKeypress"
METHOD_GET_PIXEL_COLOR = "getPixelColor"
METHOD_WAIT_FOR_PIXEL_STATE = "waitForPixelState"
METHOD_WAIT_FOR_PIXEL_ZONE = "waitForPixelZone"

WAIT_METHODS = frozenset({METHOD_WAIT_FOR_PIXEL_STATE, METHOD_WAIT_FOR_PIXEL_ZONE})

# Events (helper → orchestrator)
EVENT_OVERLAY_ICON_CLICKED = "overlayIconClicked"
EVENT_MOUSE_CLICKED = "mouseClicked"
EVENT_KEY_PRESSED = "keyPressed"
EVENT_ZONE_SELECTED = "zoneSelected"
EVENT_PIXEL_SELECTED = "pixelSelected"
EVENT_OVERLAY_MOVED = "overlayMoved"
EVENT_OVERLAY_CLOSED = "overlayClosed"
EVENT_TIME_INPUT_COMPLETED = "timeInputCompleted"

# Error message prefixes
INVALID_REQUEST_PREFIX = "Invalid request: "
HANDLER_ERROR_PREFIX = "Handler error: "

# Pixel engine defaults
DEFAULT_POLL_INTERVAL_MS = 50
DEFAULT_WAIT_TIMEOUT_MS = 30_000
DEFAULT_THRESHOLD = 15
MAX_COLOR_DISTANCE = 441.6729559300637  # sqrt(3 * 255**2)

# Orchestrator defaults
DEFAULT_REQUEST_TIMEOUT_MS = 10_000
WAIT_TIMEOUT_BUFFER_MS = 5_000
