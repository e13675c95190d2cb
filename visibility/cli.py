#!/usr/bin/env python3
"""
Visibility Tracker CLI

Usage:
    # Ask every configured provider the brand's questions and store metrics:
    visibility report --brand Tim Hortons
    visibility report brand="Tim Hortons" --provider chatgpt --provider claude

    # Mine the latest (or a given) run for content opportunities:
    visibility mine --brand Tim Hortons
    visibility mine --brand Acme --provider gemini --date 2025-01-01T12:00:00.000Z

Brand names may contain spaces: every word after --brand (or brand=) up to
the next option is part of the name. Surrounding quotes are stripped.

Exit codes: 0 success, 1 fatal error, 2 usage error.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from visibility.context import RunId, create_run_context, input_file_for, load_tasks
from visibility.database import init_db
from visibility.errors import VisibilityError
from visibility.integrations import DEFAULT_REPORT_PROVIDERS, PROVIDERS, ProviderRouter
from visibility.opportunities import mine_opportunities
from visibility.pipeline import run_report
from visibility.reporter import write_opportunities_csv
from visibility.utils.config import get_settings, load_brand_config

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# key=value forms accepted alongside --key value
_ASSIGNABLE = ("brand", "provider", "date")


def normalize_argv(argv: List[str]) -> List[str]:
    """
    Rewrite 'brand=Tim Hortons' style tokens into option form.

    'brand=' swallows following words until the next option or key=value
    token, so unquoted multi-word names work.
    """
    out = []
    i = 0
    while i < len(argv):
        token = argv[i]
        key, sep, value = token.partition("=")
        if sep and key in _ASSIGNABLE:
            words = [value]
            i += 1
            if key == "brand":
                while i < len(argv) and not argv[i].startswith("-") and "=" not in argv[i]:
                    words.append(argv[i])
                    i += 1
            out.extend([f"--{key}", " ".join(words)])
            continue
        out.append(token)
        i += 1
    return out


def clean_brand(words: Optional[List[str]]) -> Optional[str]:
    """Join --brand words and strip surrounding quotes; None when empty."""
    if not words:
        return None
    brand = " ".join(words).strip().strip("\"'").strip()
    return brand or None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="visibility",
        description="Track how AI answer engines talk about a brand and its competitors",
    )
    parser.add_argument("--config", help="Brand configuration JSON (default: CONFIG_PATH)")
    parser.add_argument("--output-dir", help="Directory for CSV/TXT exports (default: OUTPUT_DIR)")
    parser.add_argument("--log-level", help="Logging level (default: LOG_LEVEL)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    report = subparsers.add_parser("report", help="Ask providers and store visibility metrics")
    report.add_argument("--brand", nargs="+", help="Subject brand (default: defaultBrand from config)")
    report.add_argument(
        "--provider",
        action="append",
        choices=PROVIDERS,
        help="Provider to run (repeatable; default: chatgpt, gemini, perplexity)",
    )
    report.add_argument("--input", help="Task file (default: from config inputFiles / inputFile)")
    report.add_argument("--no-export", action="store_true", help="Skip CSV/TXT export")

    mine = subparsers.add_parser("mine", help="Mine a stored run for content opportunities")
    mine.add_argument("--brand", nargs="+", help="Subject brand")
    mine.add_argument("--provider", default="chatgpt", choices=PROVIDERS, help="Provider whose answers to mine")
    mine.add_argument("--date", help="Run to mine (run_at key); default: latest run")
    mine.add_argument("--no-export", action="store_true", help="Skip the opportunities CSV")

    return parser


async def _report(args, config, config_path: Path, output_dir: Optional[Path]) -> int:
    settings = get_settings()
    brand = clean_brand(args.brand) or config.default_brand
    context = create_run_context(brand, config, location=settings.LOCATION)

    task_path = Path(args.input) if args.input else input_file_for(context.brand, config, config_path.parent)
    tasks = load_tasks(task_path)

    async with ProviderRouter(location=context.location) as router:
        router.config.log_status()
        requested = args.provider or list(DEFAULT_REPORT_PROVIDERS)
        providers = router.available(requested)
        for skipped in sorted(set(requested) - set(providers)):
            logger.warning(f"Skipping {skipped}: no API key configured")
        if not providers:
            logger.error("No configured providers to run")
            return 1

        reports = await run_report(context, tasks, providers, router, output_dir=output_dir)

    for report in reports:
        if report.csv_path:
            print(f"{report.provider}: {report.csv_path}")
    print(f"Run {context.run_id.key} complete for {context.brand}")
    return 0


async def _mine(args, config, output_dir: Optional[Path]) -> int:
    settings = get_settings()
    brand = clean_brand(args.brand)
    context = create_run_context(brand, config, location=settings.LOCATION)
    run_id = RunId.parse(args.date).key if args.date else None

    async with ProviderRouter(location=context.location) as router:
        records = await mine_opportunities(context, router, provider=args.provider, run_id=run_id)

    print(f"Stored {len(records)} opportunities for {context.brand} ({args.provider})")
    if output_dir is not None:
        path = write_opportunities_csv(records, context.brand, output_dir)
        print(path)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(normalize_argv(list(sys.argv[1:] if argv is None else argv)))

    settings = get_settings()
    logging.basicConfig(
        level=(args.log_level or settings.LOG_LEVEL).upper(),
        format=LOG_FORMAT,
    )

    brand_usage = "a brand is required: --brand \"Your Brand\" or brand=Your Brand"
    if args.command == "mine" and not clean_brand(args.brand):
        parser.error(brand_usage)

    try:
        config_path = Path(args.config or settings.CONFIG_PATH)
        config = load_brand_config(config_path)

        if not (clean_brand(args.brand) or config.default_brand):
            parser.error(brand_usage)

        output_dir = None if args.no_export else Path(args.output_dir or settings.OUTPUT_DIR)

        init_db()

        if args.command == "report":
            return asyncio.run(_report(args, config, config_path, output_dir))
        return asyncio.run(_mine(args, config, output_dir))

    except VisibilityError as e:
        logger.error(str(e))
        print(f"ERROR: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
