### pipeline.py
"""
Per-domain provisioning pipeline and the sequential batch driver.

One run is certificate -> keys -> signed zone file -> README, followed by a
backup of whatever ended up on disk, whether or not the earlier stages
succeeded. A failing domain never stops the batch.
"""

from concurrent.futures import Future, wait
from pathlib import Path
from typing import Any, Iterable, List, Optional
import logging

import pydantic
import yaml
from pydantic import BaseModel, ConfigDict

from hnssec.backup import backup
from hnssec.certificate import generate_certs
from hnssec.exceptions import ValidationError
from hnssec.keys import generate_keys
from hnssec.models import Domain, RunOptions
from hnssec.summary import write_readme
from hnssec.zone_file import generate_zone_file

logger = logging.getLogger(__name__)


class RunResult(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: Optional[str] = None
    ok: bool = False
    error: Optional[str] = None
    domain_dir: Optional[Path] = None
    backup: Optional[Future] = None


def validate_options(options: RunOptions) -> Domain:
    missing = []
    if not options.host:
        logger.error("[hnssec] Must provide host")
        missing.append("host")
    if not options.name:
        logger.error("[hnssec] Must provide name")
        missing.append("name")
    if missing:
        raise ValidationError("missing_option", f"Missing {', '.join(missing)}", {"missing": missing})

    try:
        return Domain(name=options.name, host=options.host)
    except pydantic.ValidationError as e:
        logger.error(f"[hnssec] Invalid domain or host: {e.errors()[0]['msg']}")
        raise ValidationError("invalid_option", f"Invalid domain or host for {options.name}")


def run(options: RunOptions) -> RunResult:
    """Provision one domain. Errors are logged and reported on the result, never raised."""
    try:
        domain = validate_options(options)
    except ValidationError as e:
        return RunResult(name=options.name, error=e.message)

    domain_dir = options.output_dir / domain.label
    result = RunResult(name=domain.label, domain_dir=domain_dir)

    try:
        generate_certs(domain, domain_dir)
        generate_keys(domain, domain_dir, db_path=options.db_path)
        generate_zone_file(domain_dir)
        write_readme(domain_dir, domain)
        result.ok = True
    except Exception as e:
        logger.error(f"[{domain.label}] {type(e).__name__}: {e}")
        result.error = str(e)
    finally:
        result.backup = backup(domain_dir, domain.label, options.backup_dir)

    return result


def load_catalogue(path: Path) -> List[Any]:
    """Read a catalogue file: a JSON (or YAML) list of entries with an ``ascii`` name."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ValidationError("bad_catalogue", f"Cannot read catalogue {path}: {e}")

    if not isinstance(data, list):
        raise ValidationError("bad_catalogue", f"Catalogue {path} must be a list of entries")
    return data


def entry_name(entry: Any) -> Optional[str]:
    if isinstance(entry, dict):
        return entry.get("ascii")
    return str(entry) if entry else None


def run_many(entries: Iterable[Any], base_options: RunOptions) -> List[RunResult]:
    """Run the pipeline once per catalogue entry, strictly one after the other."""
    entries = list(entries)
    total = len(entries)
    results = []

    for count, entry in enumerate(entries, 1):
        options = base_options.model_copy(update={"name": entry_name(entry)})
        results.append(run(options))

        if count < total:
            logger.info(f"[hnssec] {count}/{total} processed")
        else:
            logger.info(f"[hnssec] {count}/{total} processed…complete")

    return results


def wait_for_backups(results: Iterable[RunResult], timeout: Optional[float] = None) -> List[Path]:
    """Block until every pending archive is written. Returns the archive paths that succeeded."""
    futures = [result.backup for result in results if result.backup is not None]
    wait(futures, timeout=timeout)
    return [future.result() for future in futures if future.done() and future.exception() is None]
