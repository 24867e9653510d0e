import logging

import orjson
from peewee import *
from playhouse.db_url import connect

_LOGGER = logging.getLogger(__name__)


def connect_database(database_url: str, debug_sql: bool = False) -> Database:
    """
    Open the database for a url, e.g. sqlite:///governance.db or postgresql://user@host/db
    """
    if debug_sql:
        logger = logging.getLogger("peewee")
        logger.addHandler(logging.StreamHandler())
        logger.setLevel(logging.DEBUG)
    if database_url.startswith("sqlite"):
        return connect(
            database_url,
            pragmas={
                "journal_mode": "wal",
                "foreign_keys": 1,
                "ignore_check_constraints": 0,
            },
        )
    return connect(database_url)


class BaseModel(Model):
    """
    Models are not bound to a database here, the store binds them to the database it was given
    """

    pass


# checksummed EVM address
EvmAddress = lambda **kwargs: CharField(max_length=42, **kwargs)
# uint256 amounts do not fit into any native integer column
BigUIntField = lambda **kwargs: CharField(max_length=80, **kwargs)


class JSONListField(TextField):
    def db_value(self, value):
        return None if value is None else orjson.dumps(list(value)).decode()

    def python_value(self, value):
        return None if value is None else orjson.loads(value)
