from decimal import Decimal

from sqlalchemy import JSON, Numeric, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import TypeDecorator

from xburn_indexer.utils.amounts import to_int

# uint256 needs 78 decimal digits
UINT256_DIGITS = 78

JSONPayload = JSON().with_variant(JSONB(), "postgresql")


class UInt256(TypeDecorator):
    """Unsigned 256-bit integer stored exactly, read back as a decimal string.

    PostgreSQL keeps it in NUMERIC(78, 0); SQLite has no exact numeric type
    that wide, so the decimal text is stored instead.
    """

    impl = Numeric(precision=UINT256_DIGITS, scale=0)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(UINT256_DIGITS))
        return dialect.type_descriptor(Numeric(precision=UINT256_DIGITS, scale=0))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        as_int = to_int(value)
        if dialect.name == "sqlite":
            return str(as_int)
        return Decimal(as_int)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return str(to_int(value))
