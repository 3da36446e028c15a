"""Exception types raised while building location tables and parsing ID numbers."""


class IdCardError(Exception):
    """Base class for all idcard_info errors."""


class FormatError(IdCardError):
    """The identity-card number could not be checked against the number format."""

    def __init__(self, message: str = "idcard format error"):
        super().__init__(message)


class DataError(IdCardError):
    """A raw dataset or location table could not be read, parsed or written."""


class LocationLookupError(IdCardError, LookupError):
    """A province, city or county code is missing from the location table."""

    def __init__(self, level: str, id_card: str):
        self.level = level
        self.id_card = id_card
        super().__init__(f"{level} not found: {id_card}")


class BirthdayError(IdCardError):
    """The embedded birth date is not a valid calendar date."""


class SequenceError(IdCardError):
    """The sequence digit that encodes sex is not a digit."""
