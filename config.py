"""Central configuration for code detection stabilization.

All tunable parameters are defined here with descriptive names.
These values can be adjusted to trade scan latency against accuracy.

Coordinates and sizes are in screen (preview) pixels, times in milliseconds.
"""

# =============================================================================
# DETECTION ACCEPTANCE
# =============================================================================

# Minimum detection area as a fraction of the whole frame area
# Rejects specks and partial reads far from the camera
MIN_BOX_AREA_RATIO = 0.0001

# Aspect ratio range for accepted detections (width/height)
# Codes are roughly square; very thin slivers are misreads
MIN_ASPECT_RATIO = 0.05
MAX_ASPECT_RATIO = 2.0

# =============================================================================
# TRACKING
# =============================================================================

# IoU threshold for treating a detection as the same code seen last frame
# Kept low because hand-held cameras move a lot between frames
IOU_MATCH_THRESHOLD = 0.03

# Tracks not seen for this long are forgotten
TRACK_TIMEOUT_MS = 3000

# How often the expiry sweep runs, independent of frame arrival
EXPIRY_SWEEP_INTERVAL_MS = 1000

# =============================================================================
# CONFIRMATION
# =============================================================================

# Number of sightings before a track is trusted
# 1 = confirm on first sighting (fast, more false positives)
CONFIRMATION_THRESHOLD = 1

# =============================================================================
# PERSISTENCE
# =============================================================================

# Delay before a failed scan may be retried by a later frame
FAILED_SCAN_RETRY_DELAY_MS = 500

# =============================================================================
# REGIONS
# =============================================================================

# Confirmed codes per logical region (row of a grid layout)
REGION_GROUP_SIZE = 4

# Vertical centres closer than this are treated as the same row
REGION_ROW_TOLERANCE = 5

# =============================================================================
# VIEWFINDER
# =============================================================================

# Region of interest as a fraction of the screen, centred horizontally
VIEWFINDER_WIDTH_RATIO = 0.8
VIEWFINDER_HEIGHT_RATIO = 0.4

# Vertical shift of the viewfinder from the screen centre (negative = up)
VIEWFINDER_VERTICAL_OFFSET = -150

# Screen size used when replaying frame dumps without explicit geometry
DEFAULT_SCREEN_WIDTH = 390
DEFAULT_SCREEN_HEIGHT = 844

# =============================================================================
# PRODUCT KEYS
# =============================================================================

# Codes look like "<product>-<serial>"; the product is the prefix
PRODUCT_KEY_SEPARATOR = "-"

# =============================================================================
# WEB VIEWER
# =============================================================================

WEB_HOST = "localhost"
WEB_PORT = 30001
