import argparse
import logging
import os
import sys
from typing import List, Optional

from nrcrank.api import DEFAULT_ALPHA, DEFAULT_K, DEFAULT_TOP, create_config, run_ranking
from nrcrank.errors import InterruptedBatch, NRCError
from nrcrank.io import read_fasta, read_text, write_profiles, write_ranking
from nrcrank.models import DEFAULT_SYMBOLS, batch_progressions, build_context_model
from nrcrank.ranking import board_frame


def setup_logging(verbose: bool):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    if verbose:
        logging.getLogger("numba").setLevel(logging.WARNING)


def _add_model_options(parser: argparse.ArgumentParser):
    """Options shared by every subcommand that learns a reference model."""
    io_group = parser.add_argument_group("Input/Output Options")
    io_group.add_argument(
        "-fm",
        "--file-meta",
        default="sequences/meta.txt",
        help="Path to the reference (meta) content file. (default: %(default)s)",
    )
    io_group.add_argument(
        "-fd",
        "--file-db",
        default="sequences/db.txt",
        help="Path to the FASTA file with the candidate sequence database. (default: %(default)s)",
    )

    model_group = parser.add_argument_group("Model Options")
    model_group.add_argument(
        "-k",
        "--context-width",
        type=int,
        default=DEFAULT_K,
        help="Context width (model order). (default: %(default)s)",
    )
    model_group.add_argument(
        "-a",
        "--alpha",
        type=float,
        default=DEFAULT_ALPHA,
        help="Smoothing parameter alpha, must be > 0. (default: %(default)s)",
    )
    model_group.add_argument(
        "--symbols",
        default=DEFAULT_SYMBOLS,
        help="Valid reference symbols; other characters are removed from the content. (default: %(default)s)",
    )

    technical_group = parser.add_argument_group("Technical Options")
    technical_group.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging for detailed execution tracking.",
    )
    return io_group


def create_arg_parser() -> argparse.ArgumentParser:
    """Create and configure argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        description="nrcrank: rank sequences by Normalized Relative Compression against a reference",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
 Examples:
   # Top 20 database sequences most similar to the reference
   nrcrank rank -fm sequences/meta.txt -fd sequences/db.txt -k 13 -a 1 -t 20

   # Per-position NRC progression of two sequences
   nrcrank progression -fm sequences/meta.txt -fd sequences/db.txt \\
     --ids seq_1 seq_2 --output progression.txt
         """,
    )

    subparsers = parser.add_subparsers(dest="mode", help="Operation mode", required=True)

    rank_parser = subparsers.add_parser("rank", help="Score the database and print the best sequences.")
    rank_io = _add_model_options(rank_parser)
    rank_io.add_argument(
        "--table",
        help="Write the full score board (scores, failures) as a TSV table to this path.",
    )
    rank_group = rank_parser.add_argument_group("Ranking Options")
    rank_group.add_argument(
        "-t",
        "--top",
        type=int,
        default=DEFAULT_TOP,
        help="Number of best sequences to report. (default: %(default)s)",
    )
    rank_group.add_argument(
        "--jobs",
        type=int,
        help="Number of parallel workers. Sized from the database and CPU count when omitted.",
    )
    rank_group.add_argument(
        "--backend",
        choices=["loky", "threading"],
        default="loky",
        help="joblib backend used for parallel scoring. (default: %(default)s)",
    )

    progression_parser = subparsers.add_parser(
        "progression", help="Write the per-position NRC progression of selected sequences."
    )
    progression_io = _add_model_options(progression_parser)
    progression_io.add_argument(
        "--ids",
        nargs="+",
        help="Identifiers of the sequences to profile. All sequences when omitted.",
    )
    progression_io.add_argument(
        "--output",
        help="Output profile file. Written to standard output when omitted.",
    )

    return parser


def validate_inputs(args):
    """Validate input files and parameters."""
    logger = logging.getLogger(__name__)

    if not os.path.exists(args.file_meta):
        logger.error(f"Reference file not found: {args.file_meta}")
        sys.exit(1)
    if not os.path.exists(args.file_db):
        logger.error(f"Database file not found: {args.file_db}")
        sys.exit(1)
    if args.mode == "rank" and args.top < 0:
        logger.error(f"--top must be >= 0, got {args.top}")
        sys.exit(1)
    if args.mode == "rank" and args.jobs is not None and args.jobs == 0:
        logger.error("--jobs must not be 0")
        sys.exit(1)


def run_rank(args):
    """Rank the database and print ``score<TAB>identifier`` lines."""
    config = create_config(
        content=read_text(args.file_meta),
        database=read_fasta(args.file_db),
        k=args.context_width,
        alpha=args.alpha,
        top=args.top,
        valid_symbols=args.symbols,
        n_jobs=args.jobs,
        backend=args.backend,
    )
    result = run_ranking(config)

    write_ranking(result.ranked, sys.stdout)

    if args.table:
        board_frame(result.board).to_csv(args.table, sep="\t", index=False)


def run_progression(args):
    """Write NRC progressions as a profile file."""
    model = build_context_model(read_text(args.file_meta), args.context_width, args.symbols)
    database = read_fasta(args.file_db)
    ids, profiles, failures = batch_progressions(model, database, args.alpha, ids=args.ids)
    if failures:
        logging.getLogger(__name__).warning(f"Skipped {len(failures)} sequence(s): {', '.join(failures)}")

    if args.output:
        with open(args.output, "w") as handle:
            write_profiles(ids, profiles, handle)
    else:
        write_profiles(ids, profiles, sys.stdout)


def main_cli(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    parser = create_arg_parser()

    if argv is None and len(sys.argv) == 1:
        parser.print_help(sys.stderr)
        sys.exit(1)

    args = parser.parse_args(argv)

    setup_logging(args.verbose)
    validate_inputs(args)

    logger = logging.getLogger(__name__)
    if args.verbose:
        logger.info("=" * 60)
        logger.info(f"nrcrank - {args.mode.capitalize()} Mode")
        logger.info("=" * 60)
        logger.info(f"Reference: {args.file_meta}")
        logger.info(f"Database: {args.file_db}")
        logger.info(f"k={args.context_width} alpha={args.alpha} symbols={args.symbols}")
        logger.info("=" * 60)

    try:
        if args.mode == "rank":
            run_rank(args)
        else:
            run_progression(args)
    except InterruptedBatch as e:
        logger.error(f"{e}; missing: {', '.join(e.missing)}")
        sys.exit(1)
    except (NRCError, ValueError, KeyError, OSError) as e:
        logger.error(f"Execution failed: {e}")
        if args.verbose:
            import traceback

            traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main_cli()
