#!/usr/bin/env python3
"""Simulate a triage dialogue end-to-end with a mocked DB.

Drives a TriageOrchestrator from the opening question through routing,
every pathway question and the final analysis, printing each question,
its quick replies and the answer chosen.

By default answers are **randomised** (``--random``, on by default) so each
run explores a different path through the pathway.  Use ``--no-random`` to
always pick the first option.

Usage::

    # Default run (random complaint + random answers)
    python scripts/simulate_triage.py

    # Deterministic migraine run
    python scripts/simulate_triage.py --no-random -c 剧烈头痛/偏头痛

    # Stop at the first critical answer
    python scripts/simulate_triage.py --short-circuit

    # List the opening complaints
    python scripts/simulate_triage.py --list-complaints
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import random
import sys
from pathlib import Path

# ---------------------------------------------------------------------------
# Ensure project root is on sys.path so we can import both the SDK and
# test mock infrastructure.
# ---------------------------------------------------------------------------
_SCRIPT_DIR = Path(__file__).resolve().parent
_REPO_ROOT = _SCRIPT_DIR.parent
sys.path.insert(0, str(_REPO_ROOT / "tests"))
sys.path.insert(0, str(_REPO_ROOT / "src"))

from helpers.mock_db import MockRepository  # noqa: E402
from unittest.mock import AsyncMock  # noqa: E402

from neuro_intake.analyzer import KeywordTriageAnalyzer  # noqa: E402
from neuro_intake.dialogue import DialogueEngine  # noqa: E402
from neuro_intake.errors import AnalysisFailure  # noqa: E402
from neuro_intake.orchestrator import TriageOrchestrator  # noqa: E402
from neuro_intake.ruleset import RulesetStore  # noqa: E402

USER_ID = "sim_user"
SESSION_ID = "sim_session"

# Colloquial answers mixed into random runs to exercise synonym matching
# and the free-text fallback.
_RANDOM_FREE_TEXT_POOL = [
    "都没有",
    "说不清楚",
    "经常这样",
    "有时候会",
]

_DOUBLE_LINE = "═" * 62
_SINGLE_LINE = "─" * 62

_quiet = False


def _print(*args, **kwargs) -> None:
    """Print wrapper that respects the --quiet flag."""
    if not _quiet:
        print(*args, **kwargs)


def log_header(title: str) -> None:
    _print(f"\n{_DOUBLE_LINE}")
    _print(f" {title}")
    _print(_DOUBLE_LINE)


def log_turn(n: int, result, answer: str | None) -> None:
    """Print one engine response and the simulated reply to it."""
    _print(f"\n [{n}] step {result.step}/{result.total_steps}  state={result.state.value}"
           f"  risk={result.risk_score}{'  CRITICAL' if result.critical else ''}")
    for line in result.display_text.splitlines():
        _print(f"     {line}")
    if result.options:
        _print(f"     Options: {' | '.join(result.options)}")
    if result.safety_alert:
        _print("     [!] safety phrase detected")
    if answer is not None:
        _print(f"     -> {answer}")


def pick_answer(options: list[str], use_random: bool) -> str:
    if not use_random:
        return options[0] if options else ""
    if options and random.random() > 0.15:
        return random.choice(options)
    return random.choice(_RANDOM_FREE_TEXT_POOL)


async def run_simulation(
    complaint: str | None,
    *,
    quiet: bool = False,
    use_random: bool = True,
    short_circuit: bool = False,
) -> int:
    """Drive one dialogue to its analysis; returns a process exit code."""
    global _quiet
    _quiet = quiet
    if quiet:
        logging.getLogger("neuro_intake").setLevel(logging.CRITICAL)

    store = RulesetStore()
    store.load()
    if complaint is None:
        options = store.routing.opening_options
        complaint = random.choice(options) if use_random else options[0]

    orch = TriageOrchestrator(
        DialogueEngine(store, short_circuit_on_critical=short_circuit),
        store,
        KeywordTriageAnalyzer(store),
    )
    orch._repo = MockRepository()
    db = AsyncMock()

    log_header("NEURO INTAKE TRIAGE SIMULATION")
    _print(f" Complaint:     {complaint}")
    _print(f" Random:        {'ON' if use_random else 'OFF'}")
    _print(f" Short-circuit: {'ON' if short_circuit else 'OFF'}")

    await orch.create_session(db, user_id=USER_ID, session_id=SESSION_ID)
    result = await orch.advance(db, user_id=USER_ID, session_id=SESSION_ID, text="")
    log_turn(0, result, complaint)
    result = await orch.advance(db, user_id=USER_ID, session_id=SESSION_ID, text=complaint)

    n = 1
    while result.terminal_action is None:
        answer = pick_answer(result.options, use_random)
        log_turn(n, result, answer)
        result = await orch.advance(db, user_id=USER_ID, session_id=SESSION_ID, text=answer)
        n += 1
    log_turn(n, result, None)
    if result.recommended_tools:
        _print(f"     Tools: {', '.join(t['label'] for t in result.recommended_tools)}")

    log_header("ANALYSIS")
    try:
        summary = await orch.analyze(db, user_id=USER_ID, session_id=SESSION_ID)
    except AnalysisFailure as exc:
        print(f"Analysis failed: {exc}")
        return 1

    _print(f"\n Disease:    {summary.disease.value}")
    _print(f" Risk:       {summary.risk_score} ({summary.risk_level.value})")
    _print(f" Critical:   {'Yes' if summary.critical else 'No'}")
    _print(f" Summary:    {summary.summary}")
    if summary.referral:
        _print(f" Referral:   {summary.referral.hospital_name} [{summary.referral.reference_code}]")
        _print(f"             {', '.join(summary.referral.recommends)}")
    else:
        _print(" Referral:   (none)")
    profile = await orch.get_profile(db, user_id=USER_ID, disease=summary.disease)
    _print(f" Profile:    {json.dumps(profile, ensure_ascii=False)}")
    _print(f"\n{'=' * 62}")
    _print(f" Simulation complete ({n - 1} pathway questions answered)")
    _print(f"{'=' * 62}")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Simulate a triage dialogue end-to-end with a mocked DB.",
    )
    parser.add_argument(
        "-c", "--complaint",
        default=None,
        help="Chief complaint text (default: an opening option, random when --random is on)",
    )
    parser.add_argument(
        "--list-complaints",
        action="store_true",
        help="List the opening quick-reply complaints and exit",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress all print output (exit code still reflects success/failure)",
    )
    parser.add_argument(
        "--random",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Randomise answers (default: on). Use --no-random to always pick the first option.",
    )
    parser.add_argument(
        "--short-circuit",
        action="store_true",
        help="Offer the assessment as soon as a critical option is selected",
    )
    args = parser.parse_args()

    if args.list_complaints:
        store = RulesetStore()
        store.load()
        for i, option in enumerate(store.routing.opening_options, 1):
            print(f"  {i}. {option}")
        sys.exit(0)

    sys.exit(asyncio.run(run_simulation(
        args.complaint,
        quiet=args.quiet,
        use_random=args.random,
        short_circuit=args.short_circuit,
    )))


if __name__ == "__main__":
    main()
