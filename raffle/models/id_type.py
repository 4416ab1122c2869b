from sqlalchemy import BigInteger, Integer, String
from sqlalchemy.types import TypeDecorator

# Use BigInteger by default, with a SQLite-safe Integer variant for autoincrement PKs.
ID_TYPE = BigInteger().with_variant(Integer, "sqlite")


class UInt256(TypeDecorator):
    """Unsigned 256-bit integer stored as its decimal string.

    Wei-denominated pools overflow 64-bit integer columns after a handful of
    entries, and SQLite's NUMERIC affinity rounds through a float.
    """

    impl = String(78)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        value = int(value)
        if value < 0:
            raise ValueError("UInt256 columns cannot store negative values")
        return str(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return int(value)
