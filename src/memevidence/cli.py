"""CLI entry point: memevidence

Subcommands:
    generate   Generate verified evidence items for personas
    validate   Re-check evidence placement in saved items (offline)
    inventory  Count saved items per person
    types      List the registered evidence types

Usage:
    memevidence generate --type user_facts --evidence-count 2 --personas personas.json
    memevidence generate --type changing --evidence-count 3 --personas personas.json --extensive
    memevidence validate data/evidence/user_facts/2_evidence/default
    memevidence inventory data/evidence/user_facts/2_evidence/default
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _cmd_generate(args: argparse.Namespace) -> int:
    """Generate evidence for the personas that need it most."""
    from .core.config import load_config
    from .core.result import GenerationFailed, SystemicFailureError
    from .core.runtime import RuntimeContext
    from .data.personas import load_personas
    from .llm.client import MissingAPIKeyError
    from .generation.supervisor import GenerationSupervisor
    from .generation.validator import ConversationValidator
    from .strategies import get_strategy
    from .verification.executor import VerificationExecutor

    _setup_logging(args.verbose)

    try:
        config = load_config(args.config)
        strategy = get_strategy(args.type, args.evidence_count)
        personas = load_personas(args.personas)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    gen = config.generation
    if args.people is not None:
        gen.people_to_process = args.people
    if args.use_cases is not None:
        gen.use_cases_per_person = args.use_cases
    if args.output_dir:
        gen.output_root = args.output_dir
    if args.version:
        gen.version = args.version
    if args.extensive:
        config.verification.extensive = True

    print("=" * 70)
    print(f"{strategy.evidence_count}-EVIDENCE {strategy.display_name.upper()} GENERATION")
    print("=" * 70)

    runtime = RuntimeContext(config, evidence_count=strategy.evidence_count)
    try:
        runtime.init()
    except MissingAPIKeyError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    with runtime:
        executor = VerificationExecutor(
            runtime.judge,
            config.verification,
            ConversationValidator(config.matching),
            runtime.rng,
        )
        supervisor = GenerationSupervisor(
            strategy,
            runtime.generation_client,
            executor,
            config,
            stats=runtime.stats,
            reporter=runtime.reporter,
        )
        try:
            supervisor.run(personas)
        except SystemicFailureError:
            return 2
        except GenerationFailed as e:
            print(f"Error: generation failed: {e}", file=sys.stderr)
            return 1
        except Exception as e:
            logger.debug("Generation stopped", exc_info=True)
            print(f"Error: generation stopped: {type(e).__name__}: {e}", file=sys.stderr)
            return 1
    return 0


def _cmd_validate(args: argparse.Namespace) -> int:
    """Re-run the placement validator over saved items."""
    from .core.config import load_config
    from .data.schema import EvidenceCore, EvidencePayload
    from .generation.persistence import load_evidence_items
    from .generation.validator import ConversationValidator

    _setup_logging(args.verbose)

    path = Path(args.path)
    try:
        config = load_config(args.config)
        if path.is_file():
            with open(path, encoding="utf-8") as f:
                items = EvidencePayload.from_dict(json.load(f)).evidence_items
        else:
            items = load_evidence_items(path)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    validator = ConversationValidator(config.matching)
    invalid = 0
    for idx, item in enumerate(items):
        core = EvidenceCore(item.question, item.answer, item.message_evidences)
        result = validator.validate(core, item.conversations)
        if not result.is_valid:
            invalid += 1
            print(f"[{idx}] {item.question[:70]}")
            for error in result.errors:
                print(f"    - {error}")

    print(f"\n{len(items) - invalid}/{len(items)} items valid")
    return 1 if invalid else 0


def _cmd_inventory(args: argparse.Namespace) -> int:
    """Print saved item counts per person."""
    from .generation.persistence import count_existing_evidence_per_person

    counts = count_existing_evidence_per_person(args.directory)
    if not counts:
        print(f"No evidence found in {args.directory}")
        return 0

    print(f"{'Person':<40} {'Items':>6}")
    print("-" * 47)
    for person_id, count in sorted(counts.items(), key=lambda kv: (kv[1], kv[0])):
        print(f"{person_id:<40} {count:>6}")
    print("-" * 47)
    print(f"{'Total':<40} {sum(counts.values()):>6}")
    return 0


def _cmd_types(args: argparse.Namespace) -> int:
    """List evidence types with their verification checks."""
    from .strategies import STRATEGIES

    for name, cls in sorted(STRATEGIES.items()):
        count = 2 if name == "changing" else 1
        checks = ", ".join(c.name for c in cls(count).verification_checks()) or "none"
        print(f"{name:<22} {cls.display_name:<22} checks: {checks}")
    return 0


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    from .strategies import STRATEGIES

    parser = argparse.ArgumentParser(
        prog="memevidence",
        description="Evidence generation and verification for long-term memory benchmarks",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # --- generate ---
    gen_parser = subparsers.add_parser("generate", help="Generate verified evidence items")
    gen_parser.add_argument(
        "--type", required=True, choices=sorted(STRATEGIES), help="Evidence type"
    )
    gen_parser.add_argument(
        "--evidence-count", type=int, default=1, help="Evidence messages per item (default: 1)"
    )
    gen_parser.add_argument("--personas", required=True, help="Persona file (JSON or YAML)")
    gen_parser.add_argument("--config", default=None, help="YAML config overrides")
    gen_parser.add_argument("--people", type=int, default=None, help="People to process")
    gen_parser.add_argument(
        "--use-cases", type=int, default=None, help="Use cases per person (overrides sizing)"
    )
    gen_parser.add_argument("--output-dir", default=None, help="Output root directory")
    gen_parser.add_argument("--version", default=None, help="Dataset version subdirectory")
    gen_parser.add_argument(
        "--extensive", action="store_true", help="Every judge model must pass with evidence"
    )
    gen_parser.add_argument(
        "--verbose", "-v", action="store_true", default=argparse.SUPPRESS, help="Verbose logging"
    )

    # --- validate ---
    val_parser = subparsers.add_parser("validate", help="Re-check placement in saved items")
    val_parser.add_argument("path", help="Evidence file or directory")
    val_parser.add_argument("--config", default=None, help="YAML config overrides")
    val_parser.add_argument(
        "--verbose", "-v", action="store_true", default=argparse.SUPPRESS, help="Verbose logging"
    )

    # --- inventory ---
    inv_parser = subparsers.add_parser("inventory", help="Count saved items per person")
    inv_parser.add_argument("directory", help="Evidence directory")

    # --- types ---
    subparsers.add_parser("types", help="List evidence types")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    handlers = {
        "generate": _cmd_generate,
        "validate": _cmd_validate,
        "inventory": _cmd_inventory,
        "types": _cmd_types,
    }

    handler = handlers.get(args.command)
    if handler:
        sys.exit(handler(args))
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
