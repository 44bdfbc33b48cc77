from pathlib import Path
from typing import Optional
import logging

from sqlmodel import Session

from hnssec.config import DB_PATH
from hnssec.db import get_engine
from hnssec.models import DNSSECLog

logger = logging.getLogger(__name__)

def log_dnssec(domain: str, action: str, dnssec_meta: Optional[dict] = None, host=None, db_path: Path = DB_PATH):
    dnssec_meta = dnssec_meta or {}
    log_entry = DNSSECLog(
        domain=domain,
        action=action,
        ksk_key_tag=dnssec_meta.get("ksk_key_tag"),
        zsk_key_tag=dnssec_meta.get("zsk_key_tag"),
        algorithm=dnssec_meta.get("algorithm"),
        ds_digest=dnssec_meta.get("ds_digest"),
        ds_digest_type=dnssec_meta.get("digest_type"),
        host=host,
    )

    try:
        with Session(get_engine(db_path)) as session:
            session.add(log_entry)
            session.commit()
            logger.debug(f"[{domain}] DNSSEC {action} logged")
    except Exception as e:
        logger.error(f"[{domain}] Failed to log DNSSEC event: {e}")
