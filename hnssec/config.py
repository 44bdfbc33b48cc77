### config.py
from pathlib import Path
import os
from dotenv import load_dotenv
load_dotenv()

BASE_DIR = Path.cwd()
OUTPUT_DIR = Path(os.getenv("HNSSEC_OUTPUT_DIR", BASE_DIR / "output"))
BACKUP_DIR = Path(os.getenv("HNSSEC_BACKUP_DIR", BASE_DIR / "backup"))
DB_PATH = Path(os.getenv("HNSSEC_DB_PATH", BASE_DIR / "hnssec.db"))
CATALOGUE_PATH = Path(os.getenv("HNSSEC_CATALOGUE", "catalogue.json"))

DEFAULT_TTL = int(os.getenv("HNSSEC_DEFAULT_TTL", 21600))
SIGNATURE_LIFETIME_DAYS = int(os.getenv("HNSSEC_SIGNATURE_LIFETIME_DAYS", 365))

KEY_SIZE = 2048
PUBLIC_EXPONENT = 65537
TLS_PORT = 443
CERT_VALIDITY_MONTHS = 3

# SOA timers, in seconds
SOA_REFRESH = 604800
SOA_RETRY = 86400
SOA_EXPIRE = 2419200
SOA_MINIMUM = 604800
