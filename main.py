# =============================================================================
# main.py - CLI entry point
# =============================================================================

import argparse
import logging
import signal
import sys
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional

import connectors  # noqa: F401  registers the connector types
from core.connector import ConnectorFactory
from core.exceptions import ReportCancelledError, ReportException
from core.report import ReportRunner
from core.reportlet import ReconciliationReportlet
from utils.config import Config
from utils.csv_utils import CSVHandler
from utils.store_loader import load_store
from utils.xml_utils import SUMMARY_FIELDNAMES, XMLFileContentSink, parse_findings


def setup_logging(level: str = "INFO") -> str:
    """Setup logging configuration with both console and file output"""
    log_dir = Path("logs")
    log_dir.mkdir(exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_filename = log_dir / f"reconciliation_report_{timestamp}.log"

    formatter = logging.Formatter(
        fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, level.upper()))
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Always log DEBUG to file
    file_handler = logging.FileHandler(log_filename, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging initialized - Console: {level.upper()}, File: DEBUG")
    logger.info(f"Log file: {log_filename}")

    return str(log_filename)


def write_summary(report_path: str, summary_csv: str) -> int:
    """Flatten the findings of a report into a CSV file"""
    rows = list(parse_findings(report_path))
    CSVHandler.write_csv(rows, summary_csv, SUMMARY_FIELDNAMES)
    return len(rows)


def run_report(args, config: Config, cancel_event: Optional[threading.Event] = None) -> None:
    """Run the reconciliation report; the output file only appears on success"""
    logger = logging.getLogger(__name__)

    conf = config.build_reportlet_conf(
        features=args.features,
        user_cond=args.user_cond,
        group_cond=args.group_cond,
        any_object_cond=args.any_object_cond
    )
    page_size = args.page_size or config.page_size
    store = load_store(args.store, config.ldap_defaults())

    output = Path(args.output)
    partial = output.with_name(output.name + ".part")

    try:
        with ConnectorFactory() as connector_factory, open(partial, 'wb') as stream:
            reportlet = ReconciliationReportlet(
                store, connector_factory, page_size=page_size, cancel_event=cancel_event
            )
            runner = ReportRunner(conf.name, [(reportlet, conf)])
            stats = runner.run(XMLFileContentSink(stream))[0]
        partial.replace(output)
    except BaseException:
        partial.unlink(missing_ok=True)
        raise

    logger.info(f"Report written to {output}")
    logger.info(f"Objects reported: {stats.objects_reported}/{stats.objects_inspected}, findings: {stats.findings}")

    if args.summary_csv:
        count = write_summary(str(output), args.summary_csv)
        logger.info(f"Wrote {count} finding rows to {args.summary_csv}")


def main():
    """Main CLI entry point"""
    parser = argparse.ArgumentParser(description="Identity reconciliation report")
    subparsers = parser.add_subparsers(dest='command', help='Command')

    run_parser = subparsers.add_parser('run', help='Run the reconciliation report')
    run_parser.add_argument('store', nargs='?', help='Identity store workbook (default: RECON_STORE_FILE)')
    run_parser.add_argument('output', help='Output XML report path')
    run_parser.add_argument('--features', help='Comma separated per-object features, e.g. key,username,status')
    run_parser.add_argument('--user-cond', help='FIQL condition selecting users')
    run_parser.add_argument('--group-cond', help='FIQL condition selecting groups')
    run_parser.add_argument('--any-object-cond', help='FIQL condition selecting any objects')
    run_parser.add_argument('--page-size', type=int, help='Objects fetched per page')
    run_parser.add_argument('--summary-csv', help='Also write findings as CSV rows')

    summary_parser = subparsers.add_parser('summarize', help='Flatten an XML report into CSV rows')
    summary_parser.add_argument('report', help='XML report path')
    summary_parser.add_argument('output_csv', help='Output CSV path')

    parser.add_argument('--log-level', default='INFO', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level')

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    setup_logging(args.log_level)
    logger = logging.getLogger(__name__)

    config = Config()

    if args.command == 'summarize':
        if not Path(args.report).exists():
            logger.error(f"Report not found: {args.report}")
            sys.exit(1)
        count = write_summary(args.report, args.output_csv)
        logger.info(f"Wrote {count} finding rows to {args.output_csv}")
        return

    if not args.store:
        if not config.validate_store_config():
            logger.error(f"Missing required environment variables: {config.get_missing_store_vars()}")
            sys.exit(1)
        args.store = config.store_file

    if not Path(args.store).exists():
        logger.error(f"Store workbook not found: {args.store}")
        sys.exit(1)

    cancel_event = threading.Event()

    def request_cancel(signum, frame):
        logger.warning("Cancellation requested, stopping after the current page")
        cancel_event.set()

    signal.signal(signal.SIGINT, request_cancel)

    try:
        run_report(args, config, cancel_event)
        logger.info("Report completed successfully!")
    except ReportCancelledError as e:
        logger.error(f"Report cancelled, no output written: {e}")
        sys.exit(1)
    except ReportException as e:
        logger.error(f"Report failed: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Processing failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
