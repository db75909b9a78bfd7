"""CLI entry point for hh-responder."""

import argparse
import asyncio
import json
import logging
import sys
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as package_version

import httpx
from pydantic import ValidationError

from hh_responder.core.config import DEFAULT_CONFIG_PATH, Settings
from hh_responder.core.errors import ResponderError
from hh_responder.core.log import setup_logging
from hh_responder.pipeline.orchestrator import (
    RunResult,
    apply_all,
    apply_one,
    exclude_all,
    run_pipeline,
    vacancy_label,
)
from hh_responder.platforms.headhunter.client import HeadHunterClient

APP_NAME = "hh-responder"

PROMPT_YES = "Yes"
PROMPT_NO = "No"
PROMPT_REPORT_BY_EMPLOYERS = "Report by employers"
PROMPT_MANUAL_APPLY = "Apply vacancies in manual mode"
PROMPT_VACANCIES_TO_FILE = "Dump vacancies to file"
PROMPT_APPEND_TO_EXCLUDE_FILE = "Append all vacancies to exclude file"
PROMPT_BACK = "back"

MAIN_MENU = [
    PROMPT_YES,
    PROMPT_NO,
    PROMPT_REPORT_BY_EMPLOYERS,
    PROMPT_MANUAL_APPLY,
    PROMPT_VACANCIES_TO_FILE,
]

logger = logging.getLogger("hh_responder.cli")


class ExitRequested(Exception):
    """The operator chose to stop."""


def get_version() -> str:
    try:
        return package_version(APP_NAME)
    except PackageNotFoundError:
        return "unknown"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Search hh.ru vacancies, screen them with AI and apply",
    )
    subparsers = parser.add_subparsers(dest="command")

    # --- run subcommand (default) ---
    run_parser = subparsers.add_parser("run", help="Search, filter and apply to vacancies")
    run_parser.add_argument(
        "--config", "-c",
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to settings YAML file (default: {DEFAULT_CONFIG_PATH})",
    )
    run_parser.add_argument(
        "--exclude-file", "-e",
        default=None,
        help="File with vacancies to exclude (overrides exclude_file from config)",
    )
    run_parser.add_argument(
        "--do-not-exclude-applied", "-f",
        action="store_true",
        help="Do not exclude vacancies that were already applied to",
    )
    run_parser.add_argument(
        "--yes", "-y",
        action="store_true",
        help="Apply to all found vacancies without asking for confirmation",
    )
    run_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Search and filter, print the report, but never apply",
    )
    run_parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )
    run_parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Write logs as one JSON object per line",
    )

    # --- version subcommand ---
    subparsers.add_parser("version", help="Print the version")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(2)

    return args


def ask(label: str, items: list[str]) -> str:
    """Numbered menu on stdin; returns the chosen item."""
    print(f"\n{label}")
    for idx, item in enumerate(items, start=1):
        print(f"  {idx}) {item}")
    while True:
        answer = input("> ").strip()
        if answer.isdigit() and 1 <= int(answer) <= len(items):
            return items[int(answer) - 1]
        print(f"Enter a number between 1 and {len(items)}")


def print_report(result: RunResult) -> None:
    report = result.vacancies.report_by_employer()
    print(json.dumps(report, indent=2, ensure_ascii=False))
    print(f"Vacancies count: {len(result.vacancies)}")


async def manual_apply(client: HeadHunterClient, settings: Settings, result: RunResult) -> None:
    vacancies = result.vacancies
    while True:
        labels = [vacancy_label(v) for v in vacancies]
        items = list(labels)
        if settings.exclude_file and len(vacancies):
            items.append(PROMPT_APPEND_TO_EXCLUDE_FILE)
        items.append(PROMPT_BACK)

        selected = ask("Choose a vacancy", items)
        if selected == PROMPT_BACK:
            return
        if selected == PROMPT_APPEND_TO_EXCLUDE_FILE:
            exclude_all(settings.exclude_file, vacancies)
            continue

        vacancy_id = selected.split(" ", 1)[0]
        await apply_one(client, result.resume, vacancies, vacancy_id, settings.apply.message)


async def handle_action(
    action: str,
    client: HeadHunterClient,
    settings: Settings,
    result: RunResult,
) -> None:
    if action == PROMPT_YES:
        await apply_all(client, result.resume, result.vacancies, settings.apply.message)
        raise ExitRequested
    if action == PROMPT_NO:
        logger.info("Exiting: reason=got no from prompt")
        raise ExitRequested
    if action == PROMPT_REPORT_BY_EMPLOYERS:
        print_report(result)
    elif action == PROMPT_MANUAL_APPLY:
        await manual_apply(client, settings, result)
    elif action == PROMPT_VACANCIES_TO_FILE:
        filename = result.vacancies.dump_to_tmp_file()
        logger.info("Dumped vacancies to file: filename=%s", filename)
    else:
        msg = f"invalid action: {action}"
        raise ValueError(msg)


async def run(settings: Settings, args: argparse.Namespace) -> None:
    """Run the pipeline against hh.ru and act on the survivors."""
    token = settings.resolve_token()

    async with HeadHunterClient(token, user_agent=settings.user_agent) as client:
        result = await run_pipeline(
            settings, client, ignore_applied=args.do_not_exclude_applied,
        )

        for name, step in result.steps:
            print(f"  {name}: {step.initial} -> {step.left} (dropped {step.dropped})")

        if len(result.vacancies) == 0:
            print("No vacancies left after filtering.")
            return

        if args.dry_run:
            print_report(result)
            print("[DRY RUN] Not applying.")
            return

        if args.yes:
            await apply_all(client, result.resume, result.vacancies, settings.apply.message)
            return

        while len(result.vacancies):
            logger.info("Current list of vacancies: count=%d", len(result.vacancies))
            action = ask("Proceed?", MAIN_MENU)
            try:
                await handle_action(action, client, settings, result)
            except ExitRequested:
                return


def cmd_run(args: argparse.Namespace) -> None:
    try:
        settings = Settings.from_yaml(args.config)
        settings = settings.with_overrides(exclude_file=args.exclude_file)
    except (FileNotFoundError, ValidationError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    logger.info("Starting the %s: version=%s", APP_NAME, get_version())
    logger.debug("Starting with config:\n%s", settings.model_dump_json(indent=2, exclude={"ai": {"api_key"}}))

    try:
        asyncio.run(run(settings, args))
    except (ResponderError, httpx.HTTPError, FileNotFoundError, ImportError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except (KeyboardInterrupt, EOFError):
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)

    if args.command == "version":
        print(f"{APP_NAME} version: {get_version()}")
        return

    setup_logging(args.verbose, json_format=args.json_logs)
    cmd_run(args)


if __name__ == "__main__":
    main()
