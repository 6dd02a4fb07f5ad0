from sqlalchemy import create_engine

from linksecure.core.database import Base
from linksecure.scripts.db_migrate import needs_stamp


def test_stamp_only_for_unversioned_existing_schema(tmp_path):
    url = f"sqlite:///{tmp_path / 'migrate.db'}"
    assert needs_stamp(url) is False

    Base.metadata.create_all(create_engine(url))
    assert needs_stamp(url) is True
