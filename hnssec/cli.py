import logging
from pathlib import Path

import click

from hnssec.config import BACKUP_DIR, CATALOGUE_PATH, DB_PATH, OUTPUT_DIR
from hnssec.exceptions import ValidationError
from hnssec.models import RunOptions
from hnssec.pipeline import load_catalogue, run, run_many, wait_for_backups


def configure_logging(verbose: bool):
    level = logging.INFO if verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")
    logging.getLogger("hnssec").setLevel(level)


# -h is --host here, so help is only available as --help
@click.command(context_settings={"help_option_names": ["--help"]})
@click.option('--host', '-h', default=None, help="IPv4 address the domain and its nameserver point at")
@click.option('--name', '-n', default=None, help="Domain to provision (e.g. example)")
@click.option('--many', '-m', is_flag=True, help="Process every entry of the catalogue file")
@click.option('--verbose', '-v', is_flag=True, help="Log progress and the generated records")
@click.option('--catalogue', '-c', type=click.Path(dir_okay=False, path_type=Path), default=CATALOGUE_PATH, show_default=True, help="Catalogue file used with --many")
@click.option('--output', 'output_dir', type=click.Path(file_okay=False, path_type=Path), default=OUTPUT_DIR, help="Root of the generated output tree")
@click.option('--backup', 'backup_dir', type=click.Path(file_okay=False, path_type=Path), default=BACKUP_DIR, help="Directory receiving backup archives")
@click.option('--db', 'db_path', type=click.Path(dir_okay=False, path_type=Path), default=DB_PATH, help="SQLite file receiving the DNSSEC generation log")
@click.option('--wait/--no-wait', default=True, show_default=True, help="Wait for backup archives to be written before exiting")
@click.pass_context
def cli(ctx, host, name, many, verbose, catalogue, output_dir, backup_dir, db_path, wait):
    """hnssec: self-signed TLS + DNSSEC-signed zone generator"""
    configure_logging(verbose)

    options = RunOptions(
        host=host,
        name=name,
        verbose=verbose,
        output_dir=output_dir,
        backup_dir=backup_dir,
        db_path=db_path,
    )

    if many:
        try:
            entries = load_catalogue(catalogue)
        except ValidationError as e:
            click.echo(f"[ERROR] {e.message}", err=True)
            ctx.exit(1)
        results = run_many(entries, options)
        if not verbose:
            click.echo("[hnssec] Processing complete")
    else:
        results = [run(options)]

    if wait:
        for path in wait_for_backups(results):
            click.echo(f"[hnssec] Export finished: {path}")

    failed = [result for result in results if not result.ok]
    if failed:
        for result in failed:
            click.echo(f"[ERROR] {result.name or '<no name>'}: {result.error}", err=True)
        ctx.exit(1)


def main():
    cli()


if __name__ == '__main__':
    main()
