### keys.py
"""
DNSSEC key material: generation, BIND-style persistence and reloading.

Keys are written the way ``dnssec-keygen`` lays them out, one ``.key`` file
holding the DNSKEY record and one ``.private`` file in ``Private-key-format
v1.3``. File names are ``K<name>+<alg>+<keytag>`` so any later stage can find
a key again from the domain, algorithm and key tag alone.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Tuple
import base64
import logging
import os

import dns.dnssec
import dns.exception
import dns.name
import dns.rdata
import dns.rdataclass
import dns.rdatatype
from dns.dnssectypes import Algorithm
from dns.rdtypes.dnskeybase import Flag
from cryptography.hazmat.primitives.asymmetric import rsa

from hnssec.config import DB_PATH, DEFAULT_TTL, KEY_SIZE, PUBLIC_EXPONENT
from hnssec.dnssec_logging import log_dnssec
from hnssec.exceptions import KeyMaterialError
from hnssec.models import Domain, KeyPair, KeyRole
from hnssec.summary import ds_for_key, write_output_conf, write_records_conf

logger = logging.getLogger(__name__)

ALGORITHM = Algorithm.RSASHA256
PRIVATE_KEY_FORMAT = "v1.3"

# Order matters: this is the field order BIND writes.
RSA_FIELDS = (
    ("Modulus", "n"),
    ("PublicExponent", "e"),
    ("PrivateExponent", "d"),
    ("Prime1", "p"),
    ("Prime2", "q"),
    ("Exponent1", "dmp1"),
    ("Exponent2", "dmq1"),
    ("Coefficient", "iqmp"),
)


def flags_for(role: KeyRole) -> int:
    if role == KeyRole.KSK:
        return Flag.ZONE | Flag.SEP
    return Flag.ZONE


def make_key_pair(role: KeyRole, private_key) -> KeyPair:
    dnskey = dns.dnssec.make_dnskey(private_key.public_key(), ALGORITHM, flags=flags_for(role))
    return KeyPair(
        role=role,
        algorithm=int(ALGORITHM),
        private_key=private_key,
        dnskey=dnskey,
        key_tag=dns.dnssec.key_id(dnskey),
    )


def generate_key_pair(role: KeyRole, domain: Domain, key_size: int = KEY_SIZE) -> KeyPair:
    """Generate a fresh RSA/SHA-256 key pair for ``domain`` in the given role."""
    try:
        private_key = rsa.generate_private_key(public_exponent=PUBLIC_EXPONENT, key_size=key_size)
    except ValueError as e:
        raise KeyMaterialError("keygen_failed", f"{role.value.upper()} generation failed for {domain.name}: {e}")

    key_pair = make_key_pair(role, private_key)
    logger.debug(f"[{domain.label}] {role.value.upper()} generated, key tag {key_pair.key_tag}")
    return key_pair


def tag(key_pair: KeyPair, domain: Domain) -> str:
    """File-name fragment shared by the .key and .private files of a key pair."""
    return key_file_fragment(domain.name, key_pair.algorithm, key_pair.key_tag)


def key_file_fragment(name: str, algorithm: int, key_tag: int) -> str:
    return f"K{name}+{algorithm:03d}+{key_tag:05d}"


def key_filename(key_pair: KeyPair, domain: Domain) -> str:
    return f"{tag(key_pair, domain)}.key"


def private_filename(key_pair: KeyPair, domain: Domain) -> str:
    return f"{tag(key_pair, domain)}.private"


def _b64_int(value: int) -> str:
    raw = value.to_bytes((value.bit_length() + 7) // 8 or 1, "big")
    return base64.b64encode(raw).decode("ascii")


def _int_b64(value: str) -> int:
    return int.from_bytes(base64.b64decode(value), "big")


def encode_private_key(key_pair: KeyPair, created: datetime = None) -> str:
    created = created or datetime.now(timezone.utc)
    stamp = created.strftime("%Y%m%d%H%M%S")

    numbers = key_pair.private_key.private_numbers()
    values = {
        "n": numbers.public_numbers.n,
        "e": numbers.public_numbers.e,
        "d": numbers.d,
        "p": numbers.p,
        "q": numbers.q,
        "dmp1": numbers.dmp1,
        "dmq1": numbers.dmq1,
        "iqmp": numbers.iqmp,
    }

    lines = [
        f"Private-key-format: {PRIVATE_KEY_FORMAT}",
        f"Algorithm: {key_pair.algorithm} ({Algorithm.to_text(key_pair.algorithm)})",
    ]
    lines += [f"{field}: {_b64_int(values[attr])}" for field, attr in RSA_FIELDS]
    lines += [f"Created: {stamp}", f"Publish: {stamp}", f"Activate: {stamp}"]
    return "\n".join(lines) + "\n"


def decode_private_key(text: str) -> Tuple[int, rsa.RSAPrivateKey]:
    """Parse a BIND ``.private`` file. Returns ``(algorithm, private_key)``."""
    fields = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith(";") or ":" not in line:
            continue
        key, value = line.split(":", 1)
        fields[key.strip()] = value.strip()

    if not fields.get("Private-key-format", "").startswith("v1."):
        raise KeyMaterialError("bad_private_key", "Unsupported private key format")

    try:
        algorithm = int(fields["Algorithm"].split()[0])
    except (KeyError, ValueError, IndexError):
        raise KeyMaterialError("bad_private_key", "Private key has no algorithm")

    if algorithm != ALGORITHM:
        raise KeyMaterialError(
            "bad_private_key",
            f"Unsupported key algorithm {algorithm}",
            {"algorithm": algorithm},
        )

    try:
        values = {attr: _int_b64(fields[field]) for field, attr in RSA_FIELDS}
        private_key = rsa.RSAPrivateNumbers(
            p=values["p"],
            q=values["q"],
            d=values["d"],
            dmp1=values["dmp1"],
            dmq1=values["dmq1"],
            iqmp=values["iqmp"],
            public_numbers=rsa.RSAPublicNumbers(values["e"], values["n"]),
        ).private_key()
    except KeyError as e:
        raise KeyMaterialError("bad_private_key", f"Private key is missing field {e}")
    except ValueError as e:
        raise KeyMaterialError("bad_private_key", f"Private key could not be decoded: {e}")

    return algorithm, private_key


def encode_public_key(key_pair: KeyPair, domain: Domain, ttl: int = DEFAULT_TTL) -> str:
    kind = "key-signing" if key_pair.role == KeyRole.KSK else "zone-signing"
    return (
        f"; This is a {kind} key, keyid {key_pair.key_tag}, for {domain.name}\n"
        f"{domain.name} {ttl} IN DNSKEY {key_pair.dnskey.to_text()}\n"
    )


def persist(key_pair: KeyPair, domain: Domain, target_dir: Path) -> Tuple[Path, Path]:
    """Write the ``.key`` and ``.private`` files of ``key_pair`` into ``target_dir``."""
    target_dir.mkdir(parents=True, exist_ok=True)
    key_path = target_dir / key_filename(key_pair, domain)
    private_path = target_dir / private_filename(key_pair, domain)

    private_text = encode_private_key(key_pair)
    key_path.write_text(encode_public_key(key_pair, domain))
    private_path.write_text(private_text)
    os.chmod(private_path, 0o600)

    logger.debug(f"[{domain.label}] Wrote {key_path.name} and {private_path.name}")
    return key_path, private_path


def load_private_key(path: Path) -> Tuple[int, rsa.RSAPrivateKey]:
    try:
        text = Path(path).read_text()
    except OSError as e:
        raise KeyMaterialError("unreadable_private_key", f"Cannot read {path}: {e}")
    return decode_private_key(text)


def load_key_pair(role: KeyRole, path: Path) -> KeyPair:
    """Rebuild a key pair (DNSKEY and key tag included) from a ``.private`` file."""
    _, private_key = load_private_key(path)
    return make_key_pair(role, private_key)


def load_dnskey(path: Path) -> Tuple[dns.name.Name, int, dns.rdata.Rdata]:
    """Read the DNSKEY record line out of a ``.key`` file."""
    try:
        text = Path(path).read_text()
    except OSError as e:
        raise KeyMaterialError("unreadable_key", f"Cannot read {path}: {e}")

    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith(";"):
            continue
        try:
            name, ttl, rdclass, rdtype, rdata_text = line.split(None, 4)
            if rdtype.upper() != "DNSKEY":
                continue
            rdata = dns.rdata.from_text(
                dns.rdataclass.from_text(rdclass), dns.rdatatype.DNSKEY, rdata_text
            )
        except (ValueError, dns.exception.DNSException) as e:
            raise KeyMaterialError("bad_key", f"Cannot parse {path}: {e}")
        return dns.name.from_text(name), int(ttl), rdata

    raise KeyMaterialError("bad_key", f"No DNSKEY record in {path}")


def generate_keys(domain: Domain, domain_dir: Path, db_path: Path = DB_PATH) -> Tuple[KeyPair, KeyPair]:
    """
    Create the KSK and ZSK for a domain run and write everything derived from
    them: both key file pairs, output.conf and records.conf. The DS digest of
    the KSK is recorded in the DNSSEC event log.
    """
    logger.info(f"[{domain.label}] Generating DNSSEC keys…")

    ksk = generate_key_pair(KeyRole.KSK, domain)
    persist(ksk, domain, domain_dir / KeyRole.KSK.value)

    zsk = generate_key_pair(KeyRole.ZSK, domain)
    persist(zsk, domain, domain_dir / KeyRole.ZSK.value)

    logger.info(f"[{domain.label}] Writing new output.conf file…")
    write_output_conf(domain_dir, domain, tag(ksk, domain), tag(zsk, domain))

    ds = ds_for_key(domain, ksk.dnskey)
    write_records_conf(domain_dir, domain, ds)

    log_dnssec(
        domain.label,
        action="generate",
        dnssec_meta={
            "ksk_key_tag": ksk.key_tag,
            "zsk_key_tag": zsk.key_tag,
            "algorithm": ksk.algorithm,
            "ds_digest": ds.digest.hex().upper(),
            "digest_type": int(ds.digest_type),
        },
        host=domain.host,
        db_path=db_path,
    )

    logger.info(f"[{domain.label}] Keys and config saved")
    return ksk, zsk
