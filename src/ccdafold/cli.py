#!/usr/bin/env python3
"""CLI entry point for ccdafold package.

Usage:
    python -m ccdafold convert <document.xml> [--output bundle.json] [--config ccdafold.toml]
    python -m ccdafold summary <document.xml> [--config ccdafold.toml]
    python -m ccdafold init-config [--output ccdafold.toml]
"""

import argparse
import json
import logging
import sys

DEFAULT_CONFIG = "ccdafold.toml"


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="ccdafold",
        description="Convert C-CDA documents into FHIR-shaped record bundles.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Log converter activity")
    sub = parser.add_subparsers(dest="command")

    # --- convert ---
    convert_parser = sub.add_parser("convert", help="Convert a document and write the bundle as JSON")
    convert_parser.add_argument("document", help="C-CDA XML file")
    convert_parser.add_argument("--output", "-o", help="Output file (default: stdout)")
    _add_conversion_options(convert_parser)

    # --- summary ---
    summary_parser = sub.add_parser("summary", help="Show record counts and errors for a document")
    summary_parser.add_argument("document", help="C-CDA XML file")
    _add_conversion_options(summary_parser)

    # --- init-config ---
    init_parser = sub.add_parser("init-config", help="Write a default config file")
    init_parser.add_argument("--output", default=DEFAULT_CONFIG, help="Config file path")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    if args.command == "convert":
        _handle_convert(args)
    elif args.command == "summary":
        _handle_summary(args)
    elif args.command == "init-config":
        _handle_init_config(args)


def _add_conversion_options(p):
    p.add_argument("--config", default=DEFAULT_CONFIG, help="Config file path")
    p.add_argument("--patient-only", action="store_true", help="Convert only the patient")
    p.add_argument("--recover", action="store_true", help="Parse with lxml recovery mode")


def _convert(args):
    """Run the conversion described by ``args``.

    Returns (bundle, config). Collected errors do not stop the CLI; fatal ones
    exit with status 2.
    """
    from ccdafold.config import load_config, registry_from_config
    from ccdafold.core.cda import parse_doc
    from ccdafold.errors import AggregateConversionError, FatalConversionError
    from ccdafold.executor import Executor

    config = load_config(args.config)
    conversion = config["conversion"]
    patient_only = args.patient_only or conversion["patient_only"]
    recover = args.recover or conversion["recover_xml"]

    root = parse_doc(args.document, recover=recover)
    executor = Executor(registry_from_config(config), patient_only=patient_only)
    try:
        bundle = executor.execute(root)
    except AggregateConversionError as e:
        bundle = e.bundle
    except FatalConversionError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    return bundle, config


def _handle_convert(args):
    bundle, config = _convert(args)
    text = json.dumps(bundle.to_dict(), indent=config["output"]["indent"])
    if args.output:
        with open(args.output, "w") as f:
            f.write(text + "\n")
        print(f"Wrote {len(bundle.records)} records to {args.output}", file=sys.stderr)
    else:
        print(text)

    if bundle.errors:
        _print_errors(bundle.errors)
        sys.exit(1)


def _handle_summary(args):
    bundle, _ = _convert(args)

    print(f"\n{'='*50}")
    print(f"Summary of {args.document}")
    print(f"{'='*50}")
    for kind, count in bundle.counts().items():
        print(f"  {kind:<25} {count:>6}")
    print(f"{'='*50}")
    print(f"  {'Total':<25} {len(bundle.records):>6}")

    if bundle.errors:
        _print_errors(bundle.errors, stream=sys.stdout)


def _print_errors(errors, stream=None):
    stream = stream or sys.stderr
    print(f"\n{len(errors)} conversion error(s):", file=stream)
    for e in errors:
        print(f"  - {type(e).__name__}: {e}", file=stream)


def _handle_init_config(args):
    from ccdafold.config import generate_config

    path = generate_config(config_path=args.output)
    print(f"Config generated at {path}")


if __name__ == "__main__":
    main()
