"""CLI interface for warehouse tables, datasets and transfer jobs."""
import sys
import argparse
import logging
from pathlib import Path
from typing import Optional, List

from bqtransfer.application.factories import ServiceFactory
from bqtransfer.domain.exceptions import (
    WarehouseError,
    SubmissionError,
    RemoteJobError,
    PollTimeoutError,
)
from bqtransfer.domain.models import DataFormat, JobSnapshot
from bqtransfer.infrastructure.config import ConfigLoader
from bqtransfer.shared.logging import setup_logger, get_logger

logger = get_logger(__name__)


def _print_snapshot(snapshot: JobSnapshot) -> None:
    """Human-readable lines for one status snapshot."""
    print(f"Job {snapshot.job_id} status: {snapshot.status.value}")
    if snapshot.is_done and snapshot.metadata:
        for uri in snapshot.metadata.get('destination_uris', []):
            print(f"  Exported to: {uri}")
        if snapshot.metadata.get('destination_table'):
            print(f"  Loaded into: {snapshot.metadata['destination_table']}")
        if 'output_rows' in snapshot.metadata:
            print(f"  Rows loaded: {snapshot.metadata['output_rows']}")
    elif snapshot.is_error and snapshot.error:
        print(f"  Error: {snapshot.error}")
    elif not snapshot.is_terminal:
        print(f"Job {snapshot.job_id} is not done yet")


def _wait_and_report(factory: ServiceFactory, job_id: str) -> Optional[JobSnapshot]:
    """Wait for a job and print the outcome; None when it did not finish DONE."""
    try:
        snapshot = factory.poller().wait(job_id)
    except RemoteJobError as e:
        reason = f"{e.reason}: " if e.reason else ""
        print(f"Job {job_id} failed: {reason}{e.message}")
        return None
    except PollTimeoutError as e:
        print(f"Gave up waiting: {e.message}")
        return None
    _print_snapshot(snapshot)
    return snapshot


def cmd_export(args, factory: ServiceFactory) -> int:
    staging = factory.staging() if args.download else None
    job = factory.submitter().export_table(
        args.bucket,
        args.file,
        args.dataset,
        args.table,
        data_format=args.format,
        gzip=args.gzip
    )
    print(f"Submitted export job: {job.job_id}")
    if not args.wait and staging is None:
        return 0

    snapshot = _wait_and_report(factory, job.job_id)
    if snapshot is None:
        return 1
    if staging is not None:
        for path in staging.fetch(snapshot, args.download):
            print(f"  Downloaded: {path}")
    return 0


def cmd_poll(args, factory: ServiceFactory) -> int:
    snapshot = factory.poller().check(args.job_id)
    _print_snapshot(snapshot)
    return 1 if snapshot.is_error else 0


def cmd_wait(args, factory: ServiceFactory) -> int:
    return 0 if _wait_and_report(factory, args.job_id) else 1


def cmd_import(args, factory: ServiceFactory) -> int:
    file = args.file
    if args.stage:
        if not args.bucket:
            raise SubmissionError("--stage needs --bucket to upload into")
        locator = factory.staging().stage(args.file, args.bucket)
        print(f"Staged {args.file} as {locator.uri}")
        file = locator.object_name

    job = factory.submitter().import_file(
        args.dataset,
        args.table,
        file,
        bucket=args.bucket,
        data_format=args.format
    )
    print(f"Started job: {job.job_id}")
    if args.no_wait:
        return 0
    if _wait_and_report(factory, job.job_id) is None:
        return 1
    print(f"Completed job: {job.job_id}")
    return 0


def cmd_create(args, factory: ServiceFactory) -> int:
    catalog = factory.catalog()
    if args.table:
        catalog.create_table(args.dataset, args.table, schema=args.schema)
        print(f"Created table: {args.table}")
    else:
        catalog.create_dataset(args.dataset)
        print(f"Created dataset: {args.dataset}")
    return 0


def cmd_list(args, factory: ServiceFactory) -> int:
    catalog = factory.catalog()
    if args.dataset:
        tables = catalog.list_tables(args.dataset)
        print(f"Found {len(tables)} table(s)!")
        for table in tables:
            print(f"  {table.table_id}")
    else:
        datasets = catalog.list_datasets()
        print(f"Found {len(datasets)} dataset(s)!")
        for dataset in datasets:
            print(f"  {dataset.dataset_id}")
    return 0


def cmd_delete(args, factory: ServiceFactory) -> int:
    catalog = factory.catalog()
    if args.table:
        catalog.delete_table(args.dataset, args.table)
        print(f"Deleted table: {args.table}")
    else:
        catalog.delete_dataset(args.dataset, force=args.force)
        print(f"Deleted dataset: {args.dataset}")
    return 0


def cmd_size(args, factory: ServiceFactory) -> int:
    size = factory.catalog().dataset_size(args.dataset)
    print(f"Size of {args.dataset}: {size / (1024 * 1024):.2f} MB")
    return 0


def cmd_projects(args, factory: ServiceFactory) -> int:
    projects = factory.catalog().list_projects()
    print(f"Found {len(projects)} project(s)!")
    for project in projects:
        print(f"  {project}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='bqtransfer',
        description="Manage BigQuery datasets and tables, and run export/import jobs",
        epilog="For more information, see https://cloud.google.com/bigquery/docs"
    )
    parser.add_argument('--config', type=Path, help='Config YAML file')
    parser.add_argument('--project-id', '-p', help='Project id (default: GCLOUD_PROJECT)')
    parser.add_argument('--location', help='Job location, e.g. US or europe-west1')
    parser.add_argument('--verbose', '-v', action='count', default=0, help='Verbose (-vv for debug)')

    commands = parser.add_subparsers(dest='command', metavar='command')
    commands.required = True
    formats = [f.value for f in DataFormat]

    export = commands.add_parser('export', help='Export a table to Cloud Storage')
    export.add_argument('bucket')
    export.add_argument('file')
    export.add_argument('dataset')
    export.add_argument('table')
    export.add_argument('--format', '-f', type=str.upper, choices=formats, default='CSV')
    export.add_argument('--gzip', action='store_true', help='Compress the exported table using gzip')
    export.add_argument('--wait', action='store_true', help='Wait for the job to finish')
    export.add_argument('--download', type=Path, metavar='DIR',
                        help='Wait, then download the exported files into DIR')
    export.set_defaults(handler=cmd_export)

    poll = commands.add_parser('poll', help='Check the status of a job once')
    poll.add_argument('job_id', metavar='jobId')
    poll.set_defaults(handler=cmd_poll)

    wait = commands.add_parser('wait', help='Poll a job until it finishes')
    wait.add_argument('job_id', metavar='jobId')
    wait.add_argument('--interval', type=float, help='Seconds between polls')
    wait.add_argument('--timeout', type=float, help='Give up after this many seconds')
    wait.add_argument('--max-attempts', type=int, help='Give up after this many polls')
    wait.set_defaults(handler=cmd_wait)

    imp = commands.add_parser('import', help='Import a local or Cloud Storage file into a table')
    imp.add_argument('dataset')
    imp.add_argument('table')
    imp.add_argument('file')
    imp.add_argument('--bucket', '-b', help='Cloud Storage bucket holding the file')
    imp.add_argument('--format', '-f', type=str.upper, choices=formats,
                     help='Source format (default: from file extension)')
    imp.add_argument('--no-wait', action='store_true', help='Return once the job is started')
    imp.add_argument('--stage', action='store_true',
                     help='Upload the local file to --bucket before importing')
    imp.set_defaults(handler=cmd_import)

    create = commands.add_parser('create', help='Create a dataset, or a table when one is given')
    create.add_argument('dataset')
    create.add_argument('table', nargs='?')
    create.add_argument('--schema', help='Table schema, e.g. "Name:string,Age:integer"')
    create.set_defaults(handler=cmd_create)

    lst = commands.add_parser('list', help='List datasets, or the tables of a dataset')
    lst.add_argument('dataset', nargs='?')
    lst.set_defaults(handler=cmd_list)

    delete = commands.add_parser('delete', help='Delete a dataset, or a table when one is given')
    delete.add_argument('dataset')
    delete.add_argument('table', nargs='?')
    delete.add_argument('--force', action='store_true', help='Delete a dataset with its tables')
    delete.set_defaults(handler=cmd_delete)

    size = commands.add_parser('size', help='Total size of the tables in a dataset')
    size.add_argument('dataset')
    size.set_defaults(handler=cmd_size)

    projects = commands.add_parser('projects', help='List projects')
    projects.set_defaults(handler=cmd_projects)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    if args.verbose >= 2:
        log_level = logging.DEBUG
    elif args.verbose == 1:
        log_level = logging.INFO
    else:
        log_level = logging.WARNING
    setup_logger(level=log_level)

    overrides = {
        'project_id': args.project_id,
        'location': args.location,
        'poll_interval': getattr(args, 'interval', None),
        'poll_timeout': getattr(args, 'timeout', None),
        'poll_max_attempts': getattr(args, 'max_attempts', None),
    }

    try:
        settings = ConfigLoader(config_path=args.config).load(overrides=overrides)
        factory = ServiceFactory(settings)
        return args.handler(args, factory)
    except WarehouseError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130


if __name__ == '__main__':
    sys.exit(main())
