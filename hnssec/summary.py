"""
Human-readable companions of a generated zone: output.conf, records.conf and
README.md. output.conf is also how later stages find the key files again.
"""

from pathlib import Path
from textwrap import dedent
import logging

import dns.dnssec
import dns.rdata
import yaml
from jinja2 import Environment, PackageLoader, TemplateError as JinjaTemplateError

from hnssec.config import DEFAULT_TTL
from hnssec.exceptions import TemplateError
from hnssec.models import Domain

logger = logging.getLogger(__name__)

OUTPUT_CONF = "output.conf"
RECORDS_CONF = "records.conf"
README = "README.md"
README_TEMPLATE = "README.md.j2"

OUTPUT_CONF_KEYS = ("domain", "host", "kskkey", "kskpriv", "zskkey", "zskpriv")


def ds_for_key(domain: Domain, dnskey: dns.rdata.Rdata) -> dns.rdata.Rdata:
    return dns.dnssec.make_ds(domain.origin, dnskey, "SHA256")


def write_output_conf(domain_dir: Path, domain: Domain, ksk_fragment: str, zsk_fragment: str) -> Path:
    path = domain_dir / OUTPUT_CONF
    domain_dir.mkdir(parents=True, exist_ok=True)
    path.write_text(dedent(f"""\
        domain: {domain.name}
        host: {domain.host}
        kskkey: {ksk_fragment}.key
        kskpriv: {ksk_fragment}.private
        zskkey: {zsk_fragment}.key
        zskpriv: {zsk_fragment}.private
    """))
    return path


def read_output_conf(domain_dir: Path) -> dict:
    path = domain_dir / OUTPUT_CONF
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise TemplateError("bad_output_conf", f"Cannot read {path}: {e}")

    missing = [key for key in OUTPUT_CONF_KEYS if not data.get(key)]
    if missing:
        raise TemplateError("bad_output_conf", f"{path} is missing {', '.join(missing)}")
    return {key: str(data[key]) for key in OUTPUT_CONF_KEYS}


def records_summary(domain: Domain, ds: dns.rdata.Rdata, ttl: int = DEFAULT_TTL) -> dict:
    return {
        "root": f"{domain.name} {ttl} IN DS {ds.to_text()}",
        "ds": f"{ds.key_tag} {int(ds.algorithm)} {int(ds.digest_type)} {ds.digest.hex()}",
        "glue": f"{domain.nameserver} {domain.host}",
        "ns": domain.nameserver,
    }


def write_records_conf(domain_dir: Path, domain: Domain, ds: dns.rdata.Rdata) -> Path:
    records = records_summary(domain, ds)

    logger.info(f"[{domain.label}] DS record for root zone:\n{records['root']}")
    logger.info(
        f"[{domain.label}] Registrar records:\n"
        f"DS:    {records['ds']}\n"
        f"GLUE4: {records['glue']}\n"
        f"NS:    {records['ns']}"
    )

    path = domain_dir / RECORDS_CONF
    path.write_text(
        "DS record for root zone:\n"
        f"{records['root']}\n"
        "\n"
        "Registrar records:\n"
        f"DS:    {records['ds']}\n"
        f"GLUE4: {records['glue']}\n"
        f"NS:    {records['ns']}\n"
    )
    return path


def render_readme(context: dict) -> str:
    env = Environment(
        loader=PackageLoader("hnssec", "templates"),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )
    try:
        return env.get_template(README_TEMPLATE).render(context)
    except JinjaTemplateError as e:
        raise TemplateError("template_error", f"Cannot render {README_TEMPLATE}: {e}")


def write_readme(domain_dir: Path, domain: Domain) -> Path:
    conf = read_output_conf(domain_dir)
    context = {
        "domain": domain.label,
        "host": domain.host,
        "ksk_filename": conf["kskkey"].split(".key")[0],
        "zsk_filename": conf["zskkey"].split(".key")[0],
    }
    path = domain_dir / README
    path.write_text(render_readme(context))
    return path
