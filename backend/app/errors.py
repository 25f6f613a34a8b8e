"""Application exceptions"""


class FlexError(Exception):
    """Base class for errors raised while bringing the server up"""


class DatabaseError(FlexError):
    """The database could not be reached or migrated"""


class CacheError(FlexError):
    """The Redis cache could not be reached"""
