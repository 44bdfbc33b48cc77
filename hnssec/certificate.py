from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional, Tuple
import ipaddress
import logging

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID
from dateutil.relativedelta import relativedelta
from pydantic import BaseModel, ConfigDict

from hnssec.config import CERT_VALIDITY_MONTHS, KEY_SIZE, PUBLIC_EXPONENT
from hnssec.exceptions import CertificateError
from hnssec.models import Domain

logger = logging.getLogger(__name__)

TLS_DIR = "tls"


class IssuedCertificate(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    certificate: Any  # x509.Certificate
    private_key: Any  # RSAPrivateKey, used for this certificate only


def validity_window(now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """
    Start the certificate *yesterday* so a client whose clock is a little
    behind, or in another UTC offset, never sees a certificate that is not
    valid yet. Both bounds start from the same instant; only notAfter is then
    moved forward by whole calendar months.
    """
    now = now or datetime.now(timezone.utc)
    not_before = now.replace(microsecond=0) - timedelta(days=1)
    not_after = not_before + relativedelta(months=CERT_VALIDITY_MONTHS)
    return not_before, not_after


def serial_for(not_before: datetime) -> int:
    return int(not_before.strftime("%Y%m%d") + "00")


def subject_alt_name(domain: Domain) -> x509.SubjectAlternativeName:
    # IPAddress is encoded as the raw 4 address octets
    return x509.SubjectAlternativeName([
        x509.DNSName(domain.label),
        x509.DNSName(f"*.{domain.label}"),
        x509.IPAddress(ipaddress.IPv4Address(domain.host)),
    ])


def issue(domain: Domain, now: Optional[datetime] = None, key_size: int = KEY_SIZE) -> IssuedCertificate:
    """Build and sign a self-signed certificate for ``domain`` with a fresh RSA key."""
    not_before, not_after = validity_window(now)

    try:
        private_key = rsa.generate_private_key(public_exponent=PUBLIC_EXPONENT, key_size=key_size)
        name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, domain.label)])

        builder = (
            x509.CertificateBuilder()
            .subject_name(name)
            .issuer_name(name)
            .public_key(private_key.public_key())
            .serial_number(serial_for(not_before))
            .not_valid_before(not_before)
            .not_valid_after(not_after)
            .add_extension(subject_alt_name(domain), critical=False)
            .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=False)
            .add_extension(
                x509.KeyUsage(
                    digital_signature=True,
                    content_commitment=True,
                    key_encipherment=True,
                    data_encipherment=True,
                    key_agreement=False,
                    key_cert_sign=False,
                    crl_sign=False,
                    encipher_only=False,
                    decipher_only=False,
                ),
                critical=False,
            )
        )
        certificate = builder.sign(private_key, hashes.SHA256())
    except (ValueError, TypeError) as e:
        raise CertificateError("cert_failed", f"Certificate for {domain.label} could not be signed: {e}")

    return IssuedCertificate(certificate=certificate, private_key=private_key)


def certificate_path(domain_dir: Path, domain: Domain) -> Path:
    return domain_dir / TLS_DIR / f"{domain.label}.crt"


def private_key_path(domain_dir: Path, domain: Domain) -> Path:
    return domain_dir / TLS_DIR / f"{domain.label}.key"


def write(issued: IssuedCertificate, domain: Domain, domain_dir: Path) -> Tuple[Path, Path]:
    cert_pem = issued.certificate.public_bytes(serialization.Encoding.PEM)
    key_pem = issued.private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )

    cert_path = certificate_path(domain_dir, domain)
    key_path = private_key_path(domain_dir, domain)
    cert_path.parent.mkdir(parents=True, exist_ok=True)
    cert_path.write_bytes(cert_pem)
    key_path.write_bytes(key_pem)
    return cert_path, key_path


def load_certificate(path: Path) -> x509.Certificate:
    try:
        return x509.load_pem_x509_certificate(Path(path).read_bytes())
    except (OSError, ValueError) as e:
        raise CertificateError("bad_certificate", f"Cannot load certificate {path}: {e}")


def generate_certs(domain: Domain, domain_dir: Path) -> IssuedCertificate:
    logger.info(f"[{domain.label}] Generating TLS key and self-signed certificate…")
    issued = issue(domain)
    write(issued, domain, domain_dir)
    logger.info(f"[{domain.label}] Key and certificate saved")
    return issued
