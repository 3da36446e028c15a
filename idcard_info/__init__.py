from idcard_info.errors import (
    BirthdayError,
    DataError,
    FormatError,
    IdCardError,
    LocationLookupError,
    SequenceError,
)
from idcard_info.id_parser import (
    IdCardConfig,
    IdCardParser,
    IdentityRecord,
    Sex,
    parse_id_card,
    romanize_place_name,
    validate_format,
)
from idcard_info.location_table import (
    AdministrativeCodeTable,
    LocationTableService,
    build_code_table,
    build_location_table,
    load_location_table,
)
