"""Internal constants shared across the library."""

BASE_URL = "https://map-ch.com"
IMAGE_BASE_URL = "https://mapappp.s3.ap-northeast-3.amazonaws.com"
USER_AGENT = "mapch-python/1"
REGISTER_PATH = "/api/storeUser"

ACCEPT_JSON = "application/json"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded; charset=utf-8"
METHOD_OVERRIDE_HEADER = "X-HTTP-Method-Override"
METHOD_SPOOF_FIELD = "_method"

# Seconds.
READ_TIMEOUT = 10.0
REGISTRATION_TIMEOUT = 15.0
RETRY_BACKOFF = 1.0
VIEWPORT_DEBOUNCE = 0.5

#: Edge tolerance (degrees) under which two viewports are treated as the
#: same region, roughly 50 m at mid-latitudes.
VIEWPORT_EPSILON = 0.0005
SPOT_FETCH_LIMIT = 800
BOARD_PAGE_SIZE = 20

# Multipart file field names accepted by the different backend revisions,
# in the order they are tried.
PHOTO_FIELD_CANDIDATES: tuple[str, ...] = (
    "photo[]",
    "photos[]",
    "image[]",
    "images[]",
    "file",
    "files[]",
    "photo",
)

PHOTO_CACHE_KEY_PREFIX = "photo_cache_spot_v2_"
