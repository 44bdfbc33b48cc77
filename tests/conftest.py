"""
Shared fixtures. RSA key generation is the slow part, so the key pairs and the
certificate are made once per session; every zone built from them is fresh.
"""

import pytest

from hnssec.certificate import issue
from hnssec.keys import generate_key_pair
from hnssec.models import Domain, KeyRole, RunOptions
from hnssec.signing import sign
from hnssec.zone_builder import assemble


DOMAIN_NAME = "example.test"
HOST = "203.0.113.5"


@pytest.fixture(scope="session")
def domain() -> Domain:
    return Domain(name=DOMAIN_NAME, host=HOST)


@pytest.fixture(scope="session")
def ksk(domain):
    return generate_key_pair(KeyRole.KSK, domain)


@pytest.fixture(scope="session")
def zsk(domain):
    return generate_key_pair(KeyRole.ZSK, domain)


@pytest.fixture(scope="session")
def issued(domain):
    return issue(domain)


@pytest.fixture
def unsigned_zone(domain, issued, ksk, zsk):
    return assemble(domain, issued.certificate, ksk.dnskey, zsk.dnskey)


@pytest.fixture
def signed_zone(unsigned_zone, ksk, zsk):
    return sign(unsigned_zone, ksk, zsk)


@pytest.fixture
def options(tmp_path) -> RunOptions:
    return RunOptions(
        host=HOST,
        name=DOMAIN_NAME,
        output_dir=tmp_path / "output",
        backup_dir=tmp_path / "backup",
        db_path=tmp_path / "hnssec.db",
    )
