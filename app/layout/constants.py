"""Named board constants for the table layout engine.

All values are logical board units (pixels at zoom 1.0 on a standard display)
unless noted.
"""

# Physical table surfaces
TABLE_HEIGHT = 505                 # every table surface is 505 units deep
TABLE_WIDTH = 1200                 # single and free-standing surfaces
BACK_TO_BACK_WIDTH = 2000          # both back-to-back surfaces together
FREE_STANDING_GAP = 60             # vertical gap between free-standing surfaces
FREE_STANDING_MARGIN = 50          # tolerance below the first surface's edge

# Device footprint
DEVICE_WIDTH = 140
DEVICE_BASE_HEIGHT = 40
LABEL_LINE_HEIGHT = 15             # one extra text line
NAME_WRAP_LENGTH = 15              # names longer than this wrap once
NAME_SECOND_WRAP_LENGTH = 30       # ... and twice beyond this
COLOR_WRAP_LENGTH = 20             # colors longer than this wrap

# High-DPI displays render devices smaller
HIGH_DPI_RATIO = 1.5
HIGH_DPI_DAMPING = 0.7

# Snapping
SNAP_THRESHOLD = 15

# Accessory stacking
ACCESSORY_BASE_HEIGHT = 35
ACCESSORY_FIRST_GAP = 45           # parent edge to first accessory
ACCESSORY_GUTTER = 5               # between stacked accessories
ACCESSORY_X_OFFSET = 5
ACCESSORY_KEYWORDS = ("accessori", "pencil", "keyboard", "case")

# Newly added devices cascade down-right from here
NEW_DEVICE_ORIGIN = 100
NEW_DEVICE_STEP = 20

# Image board
IMAGE_BOARD_PADDING = 140
IMAGE_SCALE_MIN = 0.1
IMAGE_SCALE_MAX = 2.0
SLOT_LANE_FRACTION = 0.9           # bound devices park at 90% of board width
SLOT_LANE_Y = 100
SLOT_RELEASE_X = 50                # device position after its slot is removed
SLOT_RELEASE_Y = 50
SLOT_MARKER_RADIUS = 24
SLOT_CONNECTOR_OFFSET = 30         # connector starts this far outside the image

# Zoom ranges
EDITOR_ZOOM_MIN = 0.25
EDITOR_ZOOM_MAX = 2.0
EDITOR_ZOOM_STEP = 0.25
VIEWER_ZOOM_MIN = 0.5
VIEWER_ZOOM_MAX = 2.0
VIEWER_ZOOM_STEP = 0.2

# Render stacking order
DEVICE_Z_INDEX = 10
ACCESSORY_Z_INDEX = 20

# Price tags
AUTOMATIC_PRICE_TAG_TYPES = ("iPhone", "Watch")
PRICE_TAG_ORIGIN_X = 50
PRICE_TAG_ORIGIN_Y = 350
PRICE_TAG_STEP = 30
