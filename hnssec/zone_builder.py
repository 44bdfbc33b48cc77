### zone_builder.py
from pathlib import Path
from typing import Optional, Tuple, Union
import hashlib
import logging

import dns.exception
import dns.name
import dns.rdata
import dns.rdataclass
import dns.rdataset
import dns.rdatatype
import dns.zone
from dns.rdtypes.dnskeybase import Flag
from cryptography import x509
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from hnssec.certificate import certificate_path, load_certificate
from hnssec.config import DEFAULT_TTL, TLS_PORT
from hnssec.exceptions import ZoneAssemblyError
from hnssec.keys import load_dnskey
from hnssec.models import Domain, KeyRole
from hnssec.summary import read_output_conf

logger = logging.getLogger(__name__)

# DANE-EE (3), SubjectPublicKeyInfo (1), SHA-256 (1)
TLSA_USAGE = 3
TLSA_SELECTOR = 1
TLSA_MATCHING_TYPE = 1


def new_zone(domain: Domain) -> dns.zone.Zone:
    return dns.zone.Zone(domain.origin, relativize=False)


def insert_record(zone: dns.zone.Zone, name: Union[str, dns.name.Name], ttl: int, rdata: dns.rdata.Rdata):
    if isinstance(name, str):
        name = dns.name.from_text(name, zone.origin)
    rdataset = zone.find_rdataset(name, rdata.rdtype, rdata.covers(), create=True)
    rdataset.add(rdata, ttl)
    return rdataset


def insert_from_text(zone: dns.zone.Zone, text: str):
    """Insert one presentation-format record line, e.g. ``example. 21600 IN A 192.0.2.1``."""
    try:
        name, ttl, rdclass, rdtype, rdata_text = text.strip().split(None, 4)
        rdata = dns.rdata.from_text(
            dns.rdataclass.from_text(rdclass),
            dns.rdatatype.from_text(rdtype),
            rdata_text,
            origin=zone.origin,
        )
        return insert_record(zone, name, int(ttl), rdata)
    except (ValueError, dns.exception.DNSException) as e:
        raise ZoneAssemblyError("bad_record", f"Cannot parse record {text!r}: {e}")


def lookup(zone: dns.zone.Zone, name: Union[str, dns.name.Name], rdtype) -> Optional[dns.rdataset.Rdataset]:
    if isinstance(name, str):
        name = dns.name.from_text(name, zone.origin)
    return zone.get_rdataset(name, rdtype)


def tlsa_owner(domain: Domain, port: int = TLS_PORT, protocol: str = "tcp") -> dns.name.Name:
    return dns.name.from_text(f"_{port}._{protocol}.{domain.name}")


def tlsa_for_certificate(certificate: x509.Certificate) -> dns.rdata.Rdata:
    subject_public_key = certificate.public_key().public_bytes(Encoding.DER, PublicFormat.SubjectPublicKeyInfo)
    pk_hash = hashlib.sha256(subject_public_key).hexdigest()
    return dns.rdata.from_text(
        dns.rdataclass.IN,
        dns.rdatatype.TLSA,
        f"{TLSA_USAGE} {TLSA_SELECTOR} {TLSA_MATCHING_TYPE} {pk_hash}",
    )


def assemble(
    domain: Domain,
    certificate: x509.Certificate,
    ksk_dnskey: dns.rdata.Rdata,
    zsk_dnskey: dns.rdata.Rdata,
    ttl: int = DEFAULT_TTL,
    dnskey_ttl: Optional[int] = None,
) -> dns.zone.Zone:
    """
    Build the unsigned zone: A records for the apex and the wildcard, a TLSA
    record for the TLS service of the apex copied to the wildcard, then the
    ZSK and KSK DNSKEY records at the apex.
    """
    zone = new_zone(domain)
    apex = domain.origin
    wildcard = dns.name.from_text(domain.wildcard)

    # A records for the domain and all subdomains
    insert_from_text(zone, f"{domain.name} {ttl} IN A {domain.host}")
    insert_from_text(zone, f"{domain.wildcard} {ttl} IN A {domain.host}")

    # TLSA at _443._tcp, copied as-is to the wildcard owner
    tlsa = tlsa_for_certificate(certificate)
    insert_record(zone, tlsa_owner(domain), ttl, tlsa)
    insert_record(zone, wildcard, ttl, tlsa.replace())
    logger.debug(f"[{domain.label}] TLSA for {tlsa_owner(domain)}: {tlsa.to_text()}")

    if zsk_dnskey.flags & Flag.SEP:
        raise ZoneAssemblyError("bad_dnskey", "ZSK DNSKEY carries the SEP flag")
    if not ksk_dnskey.flags & Flag.SEP:
        raise ZoneAssemblyError("bad_dnskey", "KSK DNSKEY is missing the SEP flag")

    dnskey_ttl = dnskey_ttl or ttl
    insert_record(zone, apex, dnskey_ttl, zsk_dnskey)
    insert_record(zone, apex, dnskey_ttl, ksk_dnskey)
    return zone


def assemble_from_disk(domain_dir: Path) -> Tuple[Domain, dns.zone.Zone]:
    """
    Rebuild the unsigned zone from the files of a previous (possibly failed)
    run: output.conf, the certificate and both ``.key`` files.
    """
    conf = read_output_conf(domain_dir)
    domain = Domain(name=conf["domain"], host=conf["host"])
    certificate = load_certificate(certificate_path(domain_dir, domain))

    dnskeys = {}
    for role, conf_key in ((KeyRole.ZSK, "zskkey"), (KeyRole.KSK, "kskkey")):
        name, dnskey_ttl, dnskey = load_dnskey(domain_dir / role.value / conf[conf_key])
        if name != domain.origin:
            raise ZoneAssemblyError(
                "bad_dnskey",
                f"{conf[conf_key]} belongs to {name}, not {domain.name}",
            )
        dnskeys[role] = (dnskey_ttl, dnskey)

    zone = assemble(
        domain,
        certificate,
        ksk_dnskey=dnskeys[KeyRole.KSK][1],
        zsk_dnskey=dnskeys[KeyRole.ZSK][1],
        dnskey_ttl=dnskeys[KeyRole.KSK][0],
    )
    return domain, zone
