"""
Script to export the contents of a PostgreSQL view to a CSV file.

This script performs the following steps:
1. Parse the command line, load configuration settings and initialize logging.
2. Resolve the connection from the PG environment variables or the --connectionString option.
3. Select every row of the view (optionally LIMITed) and write it to a fully quoted CSV file.

Exit code is 0 on success and 1 on any error, including argument errors and help display.
"""

import argparse
import os
import sys
import time

from dotenv import load_dotenv

from pgview2csv import __version__
from pgview2csv.connection_utils import (
    append_to_application_name,
    build_connection_descriptor,
    get_sanitized_connection_string,
    is_url,
    parse_connection_string,
)
from pgview2csv.exceptions import ConfigurationError, ExportError
from pgview2csv.export_utils import ExportRequest, write_view_to_csv
from pgview2csv.file_utils import get_export_settings, load_config
from pgview2csv.logging_config import finalize_logger, setup_logger

PROGRAM_NAME = "pgview2csv"

HELP_FLAGS = {"-h", "--help", "/?", "-?"}
DETAIL_FLAGS = {"--detail", "--detailed"}

EXTENDED_HELP = """
Connection
  The connection is read from the standard PostgreSQL environment variables
  PGHOST, PGPORT, PGUSER, PGPASSWORD and PGDATABASE (a .env file in the working
  directory is loaded first). If any of them is set, they are used and
  --connectionString is ignored.

  --connectionString accepts either "Host=...;Port=...;Username=...;Password=...;Database=..."
  or a SQLAlchemy URL such as postgresql+psycopg://user@host:5432/db.

Output
  Every field, header included, is double quoted. Nulls are written as "".
  Dates use ISO 8601. An empty view produces an empty file (no header).
  The file encoding is set by [Export] encoding in config.ini (default utf-8-sig).

Examples
  pgview2csv --view reporting.v_orders -f orders.csv
  pgview2csv --view v_orders -f sample.csv --limit 100 -c "Host=db;Database=shop;Username=report"
"""


def non_negative_int(value):
    """argparse type for --limit."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer value: '{value}'") from None
    if number < 0:
        raise argparse.ArgumentTypeError(f"must not be negative: {number}")
    return number


def build_parser():
    """Build the command line parser."""
    parser = argparse.ArgumentParser(
        prog=PROGRAM_NAME,
        description="Query a PostgreSQL view and write the rows to a CSV file.",
        add_help=False,
    )
    parser.add_argument("-f", "--file", required=True, dest="output_file", help="The output CSV file path")
    parser.add_argument(
        "-c",
        "--connectionString",
        dest="connection_string",
        help="Database connection string. Note: PG environment variables can also be used.",
    )
    parser.add_argument("--view", required=True, dest="view_name", help="The name of the view (can include schema prefix).")
    parser.add_argument(
        "--limit",
        type=non_negative_int,
        default=0,
        help="An optional value to limit the number of rows to return (uses LIMIT). 0 means no limit.",
    )
    parser.add_argument(
        "--no-overwrite",
        action="store_true",
        help="Fail instead of replacing the output file if it already exists.",
    )
    parser.add_argument("-h", "--help", "-?", action="store_true", dest="show_help", help="Show this help and exit.")
    parser.add_argument("--detail", "--detailed", action="store_true", help="With --help, also show the extended help.")
    return parser


def show_help(parser, argv):
    """Print the usage if a help flag is present. Returns True if help was shown."""
    args = {arg.lower() for arg in argv}
    if not args & HELP_FLAGS:
        return False

    print(parser.format_help())
    if args & DETAIL_FLAGS:
        print(EXTENDED_HELP)
    return True


def resolve_connection(environment, connection_string, logger, application_name=None):
    """
    Pick the connection to use.

    The PG environment variables win over the command line connection string. The application
    name, if given, is appended to the connection's own application name (SQLAlchemy URLs are used unchanged).

    Args:
        environment (Mapping[str, str]): Usually os.environ.
        connection_string (str): Value of --connectionString, may be None.
        logger (logging.Logger): Logger instance.
        application_name (str): Appended to the application name of the connection.

    Returns:
        ConnectionDescriptor or str: A descriptor, or a SQLAlchemy URL string.

    Raises:
        ConfigurationError: If neither source defines a connection, or the one used is invalid.
    """
    try:
        descriptor = build_connection_descriptor(environment)
    except ConfigurationError as e:
        logger.error(f"Invalid connection in PG environment variables: {e}")
        raise

    if not descriptor.is_empty():
        logger.info("Connection string read from PG environment variables.")
    elif connection_string and connection_string.strip():
        logger.info("Connection string read from Command Line Parameter.")
        if is_url(connection_string):
            return connection_string.strip()
        try:
            descriptor = parse_connection_string(connection_string)
        except ConfigurationError as e:
            logger.error(f"Invalid connection string from Command Line Parameter: {e}")
            raise
    else:
        logger.error("No database connection string defined.")
        raise ConfigurationError("No database connection string defined.")

    if application_name:
        descriptor = append_to_application_name(descriptor, application_name)
    return descriptor


def main(argv=None):
    """Main function to export a view to a CSV file. Returns the process exit code."""
    start_time = time.perf_counter()
    argv = sys.argv[1:] if argv is None else list(argv)
    parser = build_parser()

    if show_help(parser, argv):
        return 1

    try:
        args = parser.parse_args(argv)
    except SystemExit:
        # argparse has already printed the usage and the error to stderr
        return 1

    settings = get_export_settings(load_config())
    logger = setup_logger(
        "pgview2csv_logger",
        "pgview2csv.log",
        log_level=settings["log_level"],
        log_dir=settings["log_path"] or None,
    )
    logger.info(f"{PROGRAM_NAME} v.{__version__}")

    try:
        load_dotenv()
        connection = resolve_connection(
            os.environ, args.connection_string, logger, settings["application_name"]
        )
        logger.info(get_sanitized_connection_string(connection))

        request = ExportRequest(
            connection=connection,
            view_name=args.view_name,
            output_file_path=args.output_file,
            row_limit=args.limit or None,
            overwrite_existing=not args.no_overwrite,
            encoding=settings["encoding"],
        )
        result = write_view_to_csv(request, logger)
        print(f"CSV output for {args.view_name} successfully written to {result.file_path}.")

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        logger.info(f"{PROGRAM_NAME} run duration: {elapsed_ms:.0f}ms")
        return 0

    except (ExportError, OSError) as e:
        elapsed_ms = (time.perf_counter() - start_time) * 1000
        logger.info(f"{PROGRAM_NAME} run duration(with error): {elapsed_ms:.0f}ms")
        logger.debug("Export failed", exc_info=True)
        print(str(e), file=sys.stderr)
        return 1

    finally:
        finalize_logger(logger)


if __name__ == "__main__":
    sys.exit(main())
