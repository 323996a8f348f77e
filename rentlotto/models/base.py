from sqlalchemy import BigInteger, Integer
from sqlalchemy.orm import DeclarativeBase

from rentlotto.db.metadata import metadata_obj

# Primary and foreign keys; SQLite only autoincrements INTEGER primary keys.
ID_TYPE = BigInteger().with_variant(Integer, "sqlite")


class Base(DeclarativeBase):
    metadata = metadata_obj
