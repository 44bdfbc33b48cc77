"""
DNSSEC signing of an assembled zone.

The KSK signs the apex DNSKEY RRset and nothing else. The ZSK signs every
other RRset, wildcard owners included. Signing is per RRset: one RRSIG per
(owner, type), never one per record.
"""

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional, Tuple
import logging

import dns.dnssec
import dns.name
import dns.rdataset
import dns.rdatatype
import dns.zone

from hnssec.config import SIGNATURE_LIFETIME_DAYS
from hnssec.exceptions import SigningError
from hnssec.keys import load_key_pair
from hnssec.models import KeyPair, KeyRole
from hnssec.summary import read_output_conf

logger = logging.getLogger(__name__)


def sign_rrset(
    zone: dns.zone.Zone,
    name: dns.name.Name,
    rdataset: dns.rdataset.Rdataset,
    key_pair: KeyPair,
    inception: datetime,
    expiration: datetime,
):
    try:
        rrsig = dns.dnssec.sign(
            (name, rdataset),
            key_pair.private_key,
            signer=zone.origin,
            dnskey=key_pair.dnskey,
            inception=inception,
            expiration=expiration,
        )
    except (ValueError, TypeError, dns.dnssec.ValidationFailure) as e:
        raise SigningError(
            "sign_failed",
            f"Failed to sign {name} {dns.rdatatype.to_text(rdataset.rdtype)}: {e}",
        )

    # Re-signing replaces the previous signature instead of adding a second one
    zone.delete_rdataset(name, dns.rdatatype.RRSIG, rdataset.rdtype)
    sigset = zone.find_rdataset(name, dns.rdatatype.RRSIG, rdataset.rdtype, create=True)
    sigset.add(rrsig, rdataset.ttl)
    return rrsig


def sign(
    zone: dns.zone.Zone,
    ksk: KeyPair,
    zsk: KeyPair,
    inception: Optional[datetime] = None,
    lifetime: Optional[timedelta] = None,
) -> dns.zone.Zone:
    """Sign every RRset in ``zone`` in place and return it."""
    inception = inception or datetime.now(timezone.utc).replace(microsecond=0)
    expiration = inception + (lifetime or timedelta(days=SIGNATURE_LIFETIME_DAYS))

    dnskey_rrset = zone.get_rdataset(zone.origin, dns.rdatatype.DNSKEY)
    if dnskey_rrset is None:
        raise SigningError("no_dnskey", f"No DNSKEY RRset at {zone.origin}")

    if ksk.dnskey not in dnskey_rrset or zsk.dnskey not in dnskey_rrset:
        raise SigningError(
            "key_mismatch",
            f"Signing keys {ksk.key_tag}/{zsk.key_tag} are not published in the DNSKEY RRset of {zone.origin}",
        )

    sign_rrset(zone, zone.origin, dnskey_rrset, ksk, inception, expiration)

    count = 1
    for name, node in list(zone.nodes.items()):
        for rdataset in list(node.rdatasets):
            if rdataset.rdtype == dns.rdatatype.RRSIG:
                continue
            if rdataset.rdtype == dns.rdatatype.DNSKEY and name == zone.origin:
                continue
            sign_rrset(zone, name, rdataset, zsk, inception, expiration)
            count += 1

    logger.debug(f"[{zone.origin}] {count} RRsets signed, valid until {expiration:%Y-%m-%d}")
    return zone


def load_signing_keys(domain_dir: Path) -> Tuple[KeyPair, KeyPair]:
    """Load the KSK and ZSK of a domain from the ``.private`` files named in output.conf."""
    conf = read_output_conf(domain_dir)
    ksk = load_key_pair(KeyRole.KSK, domain_dir / KeyRole.KSK.value / conf["kskpriv"])
    zsk = load_key_pair(KeyRole.ZSK, domain_dir / KeyRole.ZSK.value / conf["zskpriv"])
    return ksk, zsk


def sign_from_disk(zone: dns.zone.Zone, domain_dir: Path) -> dns.zone.Zone:
    ksk, zsk = load_signing_keys(domain_dir)
    return sign(zone, ksk, zsk)


def signatures(zone: dns.zone.Zone) -> List[Tuple[dns.name.Name, int, int]]:
    """``(owner, covered type, key tag)`` for every RRSIG in the zone."""
    found = []
    for name, node in zone.nodes.items():
        for rdataset in node.rdatasets:
            if rdataset.rdtype != dns.rdatatype.RRSIG:
                continue
            for rrsig in rdataset:
                found.append((name, rrsig.type_covered, rrsig.key_tag))
    return found


def verify(zone: dns.zone.Zone, now: Optional[float] = None) -> int:
    """
    Validate every RRSIG against the apex DNSKEY RRset. Returns the number of
    signatures checked and raises SigningError on the first bad one.
    """
    dnskey_rrset = zone.get_rdataset(zone.origin, dns.rdatatype.DNSKEY)
    if dnskey_rrset is None:
        raise SigningError("no_dnskey", f"No DNSKEY RRset at {zone.origin}")
    keys = {zone.origin: dnskey_rrset}

    checked = 0
    for name, node in zone.nodes.items():
        for sigset in node.rdatasets:
            if sigset.rdtype != dns.rdatatype.RRSIG:
                continue
            covered = node.get_rdataset(sigset.rdclass, sigset.covers)
            if covered is None:
                raise SigningError("orphan_rrsig", f"RRSIG at {name} covers a missing RRset")
            for rrsig in sigset:
                try:
                    dns.dnssec.validate_rrsig((name, covered), rrsig, keys, now=now)
                except dns.dnssec.ValidationFailure as e:
                    raise SigningError(
                        "bad_rrsig",
                        f"RRSIG for {name} {dns.rdatatype.to_text(sigset.covers)} does not validate: {e}",
                    )
                checked += 1
    return checked
