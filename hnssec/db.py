from pathlib import Path
import logging

from sqlmodel import SQLModel, create_engine

from hnssec.config import DB_PATH
from hnssec import models  # noqa: F401  registers the tables

logger = logging.getLogger(__name__)

_engines = {}

def get_engine(db_path: Path = DB_PATH):
    key = str(db_path)
    if key not in _engines:
        logger.debug(f"[hnssec] Using DB at: {db_path}")
        engine = create_engine(f"sqlite:///{db_path}")
        SQLModel.metadata.create_all(engine)
        _engines[key] = engine
    return _engines[key]
