### zone_file.py
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional
import logging
import re

import dns.rdatatype
import dns.zone

from hnssec.config import SOA_EXPIRE, SOA_MINIMUM, SOA_REFRESH, SOA_RETRY
from hnssec.models import Domain
from hnssec.signing import sign_from_disk, verify
from hnssec.zone_builder import assemble_from_disk

logger = logging.getLogger(__name__)

BLANK_LINES = re.compile(r"\n{3,}")
SPACES = re.compile(r" {2,}")


def zone_serial(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.strftime("%Y%m%d01")  # date + increment


def header(domain: Domain, serial: str) -> str:
    """
    Hand-written part of the zone file. The apex A record is not stated here:
    it is part of the signed record set and is written with the body.
    """
    ns = domain.nameserver
    lines = [
        ";",
        f"; ZONE data file for {domain.label.upper()}",
        ";",
        "",
        f"$ORIGIN {domain.name}",
        "",
        f"@ IN SOA {ns} admin.nic.{domain.name} (",
        f"        {serial:>10}   ; SERIAL ; current date + increment",
        f"        {SOA_REFRESH:>10}   ; REFRESH",
        f"        {SOA_RETRY:>10}   ; RETRY",
        f"        {SOA_EXPIRE:>10}   ; EXPIRE",
        f"        {SOA_MINIMUM:>10} ) ; MINIMUM",
        "",
        ";",
        "; Nameserver Info",
        ";",
        "",
        f"@ IN NS {ns}",
        "; @ IN AAAA <your nameserver IPV6 address>",
        f"{ns} IN A {domain.host}",
        "",
        ";",
        "; Domain/Website Info",
        ";",
        "",
        f"; {domain.name} IN AAAA <your webserver IPV6 address>",
        "",
        ";",
        "; DANE/DNSSEC",
        ";",
    ]
    return "\n".join(lines) + "\n"


def record_blocks(zone: dns.zone.Zone) -> List[str]:
    """Text of every RRset in zone order, each owner's RRSIGs after its records."""
    blocks = []
    for name, node in zone.nodes.items():
        records = [rds for rds in node.rdatasets if rds.rdtype != dns.rdatatype.RRSIG]
        sigs = [rds for rds in node.rdatasets if rds.rdtype == dns.rdatatype.RRSIG]
        for rdataset in records + sigs:
            blocks.append(rdataset.to_text(name, origin=zone.origin, relativize=False))
    return blocks


def normalize(text: str) -> str:
    # one blank line at most, single spaces inside records, one final newline
    text = BLANK_LINES.sub("\n\n", text)
    text = SPACES.sub(" ", text)
    return text.rstrip() + "\n"


def render(zone: dns.zone.Zone, domain: Domain, serial: Optional[str] = None) -> str:
    body = normalize("\n\n".join(record_blocks(zone)))
    return header(domain, serial or zone_serial()) + "\n" + body


def zone_file_path(domain_dir: Path, domain: Domain) -> Path:
    return domain_dir / f"db.{domain.label}"


def write_zone_file(text: str, domain_dir: Path, domain: Domain) -> Path:
    path = zone_file_path(domain_dir, domain)
    path.write_text(text)
    return path


def generate_zone_file(domain_dir: Path) -> Path:
    """Assemble, sign and write the zone from the key and certificate files on disk."""
    domain, zone = assemble_from_disk(domain_dir)
    logger.info(f"[{domain.label}] Writing new {domain.name} zone file…")

    sign_from_disk(zone, domain_dir)
    checked = verify(zone)
    logger.debug(f"[{domain.label}] {checked} signatures validated")

    path = write_zone_file(render(zone, domain), domain_dir, domain)
    logger.info(f"[{domain.label}] Zone file saved")
    return path
