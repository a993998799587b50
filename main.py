#!/usr/bin/env python3
"""
SDDC Manager Certificate Operations - Main Entry Point.

Validates and generates resource certificates in a VMware Cloud Foundation
workload domain through SDDC Manager, and reads back the certificates
SDDC Manager knows about.

Usage:
    # Validate certificates described in a specs file
    python main.py --task validate --domain-name sfo-w01 --specs-file specs.yaml

    # Generate a certificate for one resource
    python main.py --task generate --domain-id <id> \\
        --resource-fqdn sfo-w01-vc01.sfo.rainpole.io --resource-type VCENTER \\
        --ca-type Microsoft

    # List certificates of a domain / find the one issued to a resource
    python main.py --task list --domain-name sfo-w01
    python main.py --task find --domain-name sfo-w01 \\
        --resource-fqdn sfo-w01-vc01.sfo.rainpole.io

    # Fingerprint an ordered field list (no connection needed)
    python main.py --task fingerprint --fields a b c
"""

import argparse
import json
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from sddc_certs.logger import setup_logger, get_logger, mask_secret
from sddc_certs.config_loader import (
    load_config,
    load_resource_specs,
    Config,
    ConfigurationError,
)
from sddc_certs.cancellation import Deadline
from sddc_certs.client import SddcManagerClient
from sddc_certs.errors import (
    CertificateOperationError,
    OperationCancelled,
    TaskFailed,
    ValidationFailed,
)
from sddc_certs.fingerprint import ALGORITHMS, DEFAULT_ALGORITHM, certificate_id
from sddc_certs.operations import (
    compute_fingerprint,
    find_certificate_for_resource,
    flatten_certificates,
    generate_certificate_for_resource,
    get_domain_by_name,
    read_certificates,
    validate_resource_certificates,
)

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2


class Outcome(Enum):
    """Outcome of the requested task."""
    SUCCEEDED = "succeeded"
    NOT_FOUND = "not_found"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class ExecutionSummary:
    """Complete execution summary for the run."""
    task: str
    started_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    completed_at: Optional[str] = None
    domain_id: Optional[str] = None
    outcome: Outcome = Outcome.SUCCEEDED
    exit_code: int = EXIT_SUCCESS

    # Per-resource failures (validation) or task errors (generation)
    failures: List[str] = field(default_factory=list)
    certificates: List[Dict[str, Any]] = field(default_factory=list)
    fingerprint: Optional[str] = None

    # Errors that stopped the run
    global_errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.exit_code == EXIT_SUCCESS

    def fail(self, error: str, outcome: Outcome = Outcome.FAILED, exit_code: int = EXIT_FAILURE) -> None:
        """Record an error that ended the run."""
        self.global_errors.append(error)
        self.outcome = outcome
        self.exit_code = exit_code

    def finalize(self) -> None:
        """Mark execution as complete."""
        self.completed_at = datetime.now(timezone.utc).isoformat()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "task": self.task,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "domain_id": self.domain_id,
            "outcome": self.outcome.value.upper(),
            "success": self.success,
            "exit_code": self.exit_code,
            "failures": self.failures,
            "certificates": self.certificates,
            "fingerprint": self.fingerprint,
            "global_errors": self.global_errors,
        }

    def to_json(self, indent: int = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        description="SDDC Manager certificate operations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --task validate --domain-name sfo-w01 --specs-file specs.yaml
  %(prog)s --task generate --domain-id <id> --resource-fqdn vc01.example.com \\
           --resource-type VCENTER --ca-type Microsoft
  %(prog)s --task list --domain-name sfo-w01 --json-summary
  %(prog)s --task find --domain-name sfo-w01 --resource-fqdn vc01.example.com
  %(prog)s --task fingerprint --fields a b c
        """,
    )

    parser.add_argument(
        "--task",
        type=str,
        choices=["validate", "generate", "list", "find", "fingerprint"],
        required=True,
        help="Operation to run",
    )

    domain_group = parser.add_mutually_exclusive_group()
    domain_group.add_argument(
        "--domain-id",
        type=str,
        help="Workload domain id",
    )
    domain_group.add_argument(
        "--domain-name",
        type=str,
        help="Workload domain name (looked up in SDDC Manager)",
    )

    parser.add_argument(
        "--specs-file",
        type=str,
        help="Validate: YAML file listing resource certificate specs",
    )
    parser.add_argument(
        "--resource-fqdn",
        type=str,
        help="Generate/find: FQDN of the resource",
    )
    parser.add_argument(
        "--resource-type",
        type=str,
        help="Generate: resource type (e.g. VCENTER, NSXT_MANAGER, SDDC_MANAGER)",
    )
    parser.add_argument(
        "--ca-type",
        type=str,
        help="Generate: certificate authority type (e.g. Microsoft, OpenSSL)",
    )
    parser.add_argument(
        "--fields",
        nargs="+",
        help="Fingerprint: field values in order",
    )
    parser.add_argument(
        "--algorithm",
        type=str,
        choices=sorted(ALGORITHMS),
        default=None,
        help=(
            "Digest for --task fingerprint (default sha256, config.yaml is not read) "
            "and for the certificate id of --task find (overrides settings.fingerprint_algorithm)"
        ),
    )

    # Common options
    parser.add_argument(
        "--config",
        type=str,
        default="config.yaml",
        help="Path to configuration file (default: config.yaml)",
    )
    parser.add_argument(
        "--timeout",
        type=int,
        help="Override operation timeout (minutes)",
    )
    parser.add_argument(
        "--poll-interval",
        type=int,
        help="Override seconds between status checks",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose/debug logging",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored output",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Also write the log to this file",
    )
    parser.add_argument(
        "--json-summary",
        action="store_true",
        help="Output machine-readable JSON summary at the end of execution",
    )

    args = parser.parse_args(argv)

    if args.task == "fingerprint":
        if not args.fields:
            parser.error("--task fingerprint requires --fields")
        return args

    if not args.domain_id and not args.domain_name:
        parser.error(f"--task {args.task} requires --domain-id or --domain-name")
    if args.task == "validate" and not args.specs_file:
        parser.error("--task validate requires --specs-file")
    if args.task in ("generate", "find") and not args.resource_fqdn:
        parser.error(f"--task {args.task} requires --resource-fqdn")
    if args.task == "generate":
        if not args.resource_type:
            parser.error("--task generate requires --resource-type")
        if not args.ca_type:
            parser.error("--task generate requires --ca-type")
    if args.timeout is not None and args.timeout < 1:
        parser.error("--timeout must be at least 1 minute")
    if args.poll_interval is not None and args.poll_interval < 1:
        parser.error("--poll-interval must be at least 1 second")

    return args


def build_client(config: Config) -> SddcManagerClient:
    """Create an SDDC Manager client from configuration."""
    return SddcManagerClient(
        host=config.sddc_manager.host,
        username=config.sddc_manager.username,
        password=config.sddc_manager.password,
        verify_tls=not config.sddc_manager.allow_unverified_tls,
        call_timeout=config.settings.api_call_timeout_seconds,
    )


def resolve_domain_id(client: SddcManagerClient, args: argparse.Namespace) -> str:
    """Domain id from --domain-id, or looked up from --domain-name."""
    if args.domain_id:
        return args.domain_id
    domain = get_domain_by_name(client, args.domain_name)
    get_logger().info(f"Domain '{args.domain_name}' resolved to {domain.id}")
    return domain.id


def run_task(
    args: argparse.Namespace,
    config: Config,
    client: SddcManagerClient,
    summary: ExecutionSummary,
) -> None:
    """
    Run the requested task against SDDC Manager, filling in the summary.

    Errors propagate to the caller.
    """
    logger = get_logger()
    settings = config.settings
    deadline = Deadline(settings.operation_timeout_minutes * 60)

    domain_id = resolve_domain_id(client, args)
    summary.domain_id = domain_id

    if args.task == "validate":
        specs = load_resource_specs(args.specs_file)
        logger.section(f"VALIDATE {len(specs)} RESOURCE CERTIFICATE(S)")
        validate_resource_certificates(
            client,
            domain_id,
            specs,
            poll_interval=settings.poll_interval_seconds,
            cancellation=deadline,
        )

    elif args.task == "generate":
        logger.section(f"GENERATE CERTIFICATE FOR {args.resource_fqdn}")
        generate_certificate_for_resource(
            client,
            domain_id,
            resource_type=args.resource_type,
            resource_fqdn=args.resource_fqdn,
            ca_type=args.ca_type,
            stop_on_failure=settings.stop_on_task_failure,
            poll_interval=settings.poll_interval_seconds,
            cancellation=deadline,
        )

    elif args.task == "list":
        logger.section(f"CERTIFICATES OF DOMAIN {domain_id}")
        certificates = read_certificates(client, domain_id)
        summary.certificates = flatten_certificates(certificates)
        for cert in certificates:
            logger.info(
                f"  {cert.issued_to or '<unknown>'}: {cert.expiration_status or 'UNKNOWN'} "
                f"(expires {cert.not_after or 'unknown'}, "
                f"{cert.number_of_days_to_expire if cert.number_of_days_to_expire is not None else '?'} days)"
            )
        logger.info(f"  Total: {len(certificates)} certificate(s)")

    elif args.task == "find":
        logger.section(f"CERTIFICATE OF {args.resource_fqdn}")
        cert = find_certificate_for_resource(client, domain_id, args.resource_fqdn)
        if cert is None:
            logger.warning(f"No certificate issued to {args.resource_fqdn} in domain {domain_id}")
            summary.outcome = Outcome.NOT_FOUND
            return
        summary.certificates = flatten_certificates([cert])
        summary.fingerprint = certificate_id(cert, settings.fingerprint_algorithm)
        logger.info(f"  Issued by: {cert.issued_by}")
        logger.info(f"  Expires: {cert.not_after} ({cert.expiration_status})")
        logger.info(f"  Certificate id: {summary.fingerprint}")


def print_execution_summary(summary: ExecutionSummary, output_json: bool = False) -> None:
    """
    Print the execution summary block.

    Args:
        summary: ExecutionSummary with all results
        output_json: If True, also output machine-readable JSON
    """
    logger = get_logger()
    separator = "=" * 70

    logger.info("")
    logger.info(separator)
    logger.info("EXECUTION SUMMARY")
    logger.info(separator)
    logger.info(f"Status: {'SUCCESS' if summary.success else 'FAILED'}")
    logger.info(f"Task: {summary.task}")
    logger.info(f"Outcome: {summary.outcome.value.upper()}")
    if summary.domain_id:
        logger.info(f"Domain: {summary.domain_id}")
    logger.info(f"Started: {summary.started_at}")
    logger.info(f"Completed: {summary.completed_at}")

    if summary.failures:
        logger.info("")
        logger.error("-" * 40)
        logger.error("FAILED RESOURCES")
        logger.error("-" * 40)
        for failure in summary.failures:
            logger.error(f"  - {failure}")

    if summary.global_errors:
        logger.info("")
        logger.error("-" * 40)
        logger.error("ERRORS")
        logger.error("-" * 40)
        for error in summary.global_errors:
            logger.error(f"  - {error}")

    logger.info("")
    logger.info(separator)
    logger.info(f"Exit Code: {summary.exit_code}")
    logger.info(separator)

    # Status line for CI/CD pipeline parsing
    print(f"PIPELINE_STATUS={'SUCCESS' if summary.success else 'FAILURE'}")

    if output_json:
        logger.info("--- BEGIN JSON SUMMARY ---")
        print(summary.to_json())
        logger.info("--- END JSON SUMMARY ---")


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point.

    Exit Codes:
        0 - Operation succeeded (a find with no match included)
        1 - Operation failed, was cancelled, or SDDC Manager was unreachable
        2 - Configuration error

    Returns:
        Exit code
    """
    args = parse_arguments(argv)

    logger = setup_logger(
        verbose=args.verbose,
        use_colors=not args.no_color,
        log_file=args.log_file,
    )

    summary = ExecutionSummary(task=args.task)

    try:
        if args.task == "fingerprint":
            summary.fingerprint = compute_fingerprint(args.fields, args.algorithm or DEFAULT_ALGORITHM)
            logger.info(f"Fingerprint: {summary.fingerprint}")
        else:
            config = load_config(args.config)
            mask_secret(config.sddc_manager.password)

            # Apply command-line overrides
            if args.timeout:
                config.settings.operation_timeout_minutes = args.timeout
                logger.info(f"Operation timeout overridden to {args.timeout} minutes")
            if args.poll_interval:
                config.settings.poll_interval_seconds = args.poll_interval
                logger.info(f"Poll interval overridden to {args.poll_interval} seconds")
            if args.algorithm:
                config.settings.fingerprint_algorithm = args.algorithm

            run_task(args, config, build_client(config), summary)

    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        summary.fail(f"Configuration error: {e}", exit_code=EXIT_CONFIG_ERROR)

    except ValidationFailed as e:
        summary.failures = e.report.diagnostics()
        summary.fail(str(e).splitlines()[0])

    except TaskFailed as e:
        summary.failures = e.errors
        summary.fail(f"Task {e.task_id} finished with status {e.status}")

    except OperationCancelled as e:
        logger.error(f"Gave up waiting: {e}")
        summary.fail(str(e), outcome=Outcome.CANCELLED)

    except CertificateOperationError as e:
        logger.error(f"{type(e).__name__}: {e}")
        summary.fail(f"{type(e).__name__}: {e}")
        if args.verbose:
            logger.exception("Traceback")

    summary.finalize()
    print_execution_summary(summary, output_json=args.json_summary)

    return summary.exit_code


if __name__ == "__main__":
    sys.exit(main())
