# ═════════════════════════════════════════════════════════════════════════════════
# STATIC IDENTITY-CARD DATA
# ═════════════════════════════════════════════════════════════════════════════════
#
# Constants shared by the location table builder and the ID parser:
# 1. ARTIFACT LAYOUT: default file locations and JSON field names
# 2. NUMBER FORMAT: regex pattern and digit positions of 15/18 digit numbers
# 3. ADMINISTRATIVE NAMES: municipalities and place-name suffixes
# ═════════════════════════════════════════════════════════════════════════════════

# Layer 1: ARTIFACT LAYOUT - both paths are resolved from the working directory
DEFAULT_DATABASE_FILE = "database.json"
DEFAULT_LOCATION_FILE = "location.json"

# Top-level keys of location.json ("countries" holds counties, kept for compatibility)
PROVINCES_FIELD = "provinces"
CITIES_FIELD = "cities"
COUNTIES_FIELD = "countries"

LOCATION_FIELDS = (PROVINCES_FIELD, CITIES_FIELD, COUNTIES_FIELD)

# Separator inside raw dataset entries: "北京市|110000"
ENTRY_SEPARATOR = "|"

# Raw dataset key levels: "1" province, "1_0" city, "1_0_3" county
PROVINCE_KEY_PATTERN = r"^\d$"
CITY_KEY_PATTERN = r"^\d+[_.]\d+$"
COUNTY_KEY_PATTERN = r"^\d+[_.]\d+[_.]\d+"

# City codes ending in "00" are stored under their 4 digit prefix
CITY_LEVEL_CODE_PATTERN = r"^\d{4}00$"

# Layer 2: NUMBER FORMAT
# 15 digit legacy numbers: 6 area + YYMMDD + 3 sequence
LEGACY_ID_PATTERN = r"[1-9]\d{7}(?:0\d|1[0-2])(?:[0-2]\d|3[01])\d{3}"
# 18 digit numbers: 6 area + YYYYMMDD + 3 sequence + check character
CURRENT_ID_PATTERN = r"[1-9]\d{5}(?:18|19|20)\d{2}(?:0\d|1[0-2])(?:[0-2]\d|3[01])\d{3}[0-9Xx]"
ID_CARD_PATTERN = rf"^(?:{CURRENT_ID_PATTERN}|{LEGACY_ID_PATTERN})$"

CURRENT_ID_LENGTH = 18
LEGACY_ID_LENGTH = 15
LEGACY_CENTURY = "19"

BIRTHDAY_FORMAT = "%Y%m%d"

# Digit positions as (start, stop) slices
PROVINCE_PREFIX = (0, 2)
CITY_PREFIX = (0, 4)
AREA_PREFIX = (0, 6)
CURRENT_BIRTHDAY_SLICE = (6, 14)
LEGACY_BIRTHDAY_SLICE = (6, 12)
# Month/day digits compared by the legacy age rule, for both lengths
LEGACY_MONTH_DAY_SLICE = (10, 14)
CURRENT_SEQUENCE_SLICE = (16, 17)
LEGACY_SEQUENCE_START = 14

# Layer 3: ADMINISTRATIVE NAMES
# Province-level cities, which may lack a separate county code
MUNICIPALITIES = frozenset({"北京市", "天津市", "上海市", "重庆市"})

# Suffixes dropped before romanization, longest first
PLACE_NAME_SUFFIXES = (
    "特别行政区",
    "自治区",
    "自治州",
    "自治县",
    "地区",
    "省",
    "市",
    "区",
    "县",
    "盟",
    "旗",
)

