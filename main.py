# =============================================================================
# main.py - CLI entry point
# =============================================================================

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from core.admin_policy import AdminPolicy
from core.classifier import AccountClassifier
from core.directory_services import (CacheRefresher, DomainUnbindService, GroupMembership,
                                     directory_daemon_for, probe_os_version)
from core.engine import ConversionEngine
from core.enumerator import AccountEnumerator, dump_identities
from core.errors import MigrationError, MigrationAbort
from core.models import RunSummary
from core.reconciler import HomeDirectoryReconciler
from core.record_store import DsclRecordStore
from utils.audit import AuditLog
from utils.commands import CommandRunner
from utils.config import Config, MigrationSettings
from utils.csv_utils import write_report


def setup_logging(level: str = "INFO", log_dir: str = "logs") -> str:
    """Setup logging configuration with both console and file output"""
    from datetime import datetime

    # Create logs directory if it doesn't exist
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    # Generate date-stamped filename
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_filename = log_path / f"mobile_account_converter_{timestamp}.log"

    # Create formatter
    formatter = logging.Formatter(
        fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    # Get root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Clear any existing handlers
    root_logger.handlers.clear()

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, level.upper()))
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # File handler
    file_handler = logging.FileHandler(log_filename, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)  # Always log DEBUG to file
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging initialized - Console: {level.upper()}, File: DEBUG")
    logger.info(f"Log file: {log_filename}")

    return str(log_filename)


def build_engine(settings: MigrationSettings, runner: CommandRunner, daemon: str) -> ConversionEngine:
    """Wire the conversion components against the local node"""
    store = DsclRecordStore(runner, settings.tools.dscl)
    audit = AuditLog(settings.log_dir)
    return ConversionEngine(
        store=store,
        classifier=AccountClassifier(store),
        groups=GroupMembership(runner, settings.tools.dseditgroup),
        cache=CacheRefresher(runner, settings.tools.killall, daemon, settings.settle_delay),
        admin_policy=AdminPolicy(settings.admin_fact, settings.admin_fact_file),
        reconciler=HomeDirectoryReconciler(store, runner, settings, audit)
    )


def run_conversion(settings: MigrationSettings, runner: CommandRunner, daemon: str,
                   only: Optional[List[str]] = None,
                   summary: Optional[RunSummary] = None) -> RunSummary:
    """Enumerate candidates, dump their identities and convert them"""
    store = DsclRecordStore(runner, settings.tools.dscl)
    enumerator = AccountEnumerator(store, settings.uid_threshold, settings.excluded_users)
    candidates = enumerator.candidates(only)

    if not candidates:
        logging.getLogger(__name__).info("No candidate accounts found; nothing to do")
        return summary if summary is not None else RunSummary()

    dump_identities(candidates, runner, settings.tools.id, AuditLog(settings.log_dir))
    engine = build_engine(settings, runner, daemon)
    return engine.process_accounts(candidates, summary)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Convert Active Directory mobile accounts into local accounts")
    parser.add_argument('--log-level', default='INFO', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level')
    parser.add_argument('--skip-unbind', action='store_true',
                        help='Do not remove the domain binding before converting')
    parser.add_argument('--user', action='append', metavar='NAME',
                        help='Only process this account (repeatable)')
    parser.add_argument('--report', metavar='PATH', help='Write a CSV conversion report')
    parser.add_argument('--admin-fact', metavar='VALUE',
                        help="Admin policy fact; 'true' grants administrative rights")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point"""
    args = parse_args(argv)

    config = Config()
    setup_logging(args.log_level, config.log_dir)
    logger = logging.getLogger(__name__)

    if not config.validate():
        logger.error(f"Invalid configuration variables: {config.get_invalid_vars()}")
        sys.exit(1)

    summary = RunSummary()
    try:
        settings = config.resolve_settings(admin_fact=args.admin_fact)
        runner = CommandRunner()

        version = probe_os_version(runner, settings.tools.sw_vers)
        daemon = directory_daemon_for(version)
        logger.info(f"OS version {version[0]}.{version[1]}; directory daemon is {daemon}")

        if args.skip_unbind:
            logger.info("Skipping domain unbind")
        else:
            DomainUnbindService(runner, settings).unbind()

        run_conversion(settings, runner, daemon, only=args.user, summary=summary)
        logger.info("Processing completed successfully!")

    except MigrationAbort as e:
        logger.critical(f"Conversion halted at account {e.username}: {e}")
        sys.exit(e.exit_code)
    except MigrationError as e:
        logger.error(f"Environment check failed: {e}")
        sys.exit(e.exit_code)
    except Exception as e:
        logger.error(f"Processing failed: {e}")
        sys.exit(1)
    finally:
        if args.report and summary.results:
            try:
                write_report(summary, args.report)
            except OSError as e:
                logger.error(f"Could not write report {args.report}: {e}")


if __name__ == "__main__":
    main()
