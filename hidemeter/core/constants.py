"""Application-wide constants."""

APP_NAME = "Hide Area Meter"
VERSION = "1.0.0"

# Logical unit grid shared by detection, persistence and export
GRID_SIZE = 1000.0

# A4 sheet: 210mm x 297mm
A4_REAL_AREA_M2 = 0.06237

REFERENCE_POINT_COUNT = 4
MIN_POLYGON_POINTS = 3

# Learning reference is only captured for traces with more points than this
LEARNING_MIN_POINTS = 10

# Relative-edit rescaling is refused below this original area (grid units^2)
MIN_RELATIVE_UNIT_AREA = 1.0

MIN_ZOOM = 1.0
MAX_ZOOM = 5.0
ZOOM_STEP = 0.5

# Pointer hit radius in grid units at zoom 1
VERTEX_HIT_RADIUS = 15.0

# Drawn sizes in screen pixels
VERTEX_RADIUS = 6.0
ACTIVE_VERTEX_RADIUS = 15.0
REFERENCE_VERTEX_RADIUS = 8.0
STROKE_WIDTH = 2.0

MAX_IMAGE_DIMENSION = 1000
THUMBNAIL_SIZE = 400
MAX_UPLOAD_BYTES = 10 * 1024 * 1024

MANUAL_EXPLANATION = "Medição manual realizada pelo usuário."
