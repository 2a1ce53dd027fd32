from __future__ import annotations

import argparse
import json
import sys
from typing import List, Optional

from loguru import logger

from .errors import InvalidConfiguration, StudyDesignError
from .models import RandomizationConfig, RandomizationMethod, SampleSizeRequest, StudyDesignType
from .power import calculate_breakdown
from .randomization import generate_sequence
from .utils import allocation_summary, as_report_dict, fmt_ratio, parse_ratio, sequence_report


def _configure_logging(verbose: bool) -> None:
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "WARNING")


def _load_config(args: argparse.Namespace) -> RandomizationConfig:
    data = {}
    if args.config:
        try:
            with open(args.config, encoding="utf-8") as f:
                data = json.load(f)
        except OSError as e:
            raise InvalidConfiguration(f"Cannot read config file {args.config!r}: {e.strerror or e}") from e
        except json.JSONDecodeError as e:
            raise InvalidConfiguration(f"Config file {args.config!r} is not valid JSON: {e}") from e
        if isinstance(data, dict) and "randomization" in data:
            data = data["randomization"]
        if not isinstance(data, dict):
            raise InvalidConfiguration(f"Config file {args.config!r} must contain a JSON object")
        data = dict(data)
    # Flags given on the command line override the file.
    if args.method is not None:
        data["method"] = args.method
    if args.ratio is not None:
        data["ratio"] = list(parse_ratio(args.ratio))
    if args.block_size is not None:
        data["blockSize"] = [args.block_size]
    if args.seed is not None:
        data["seed"] = args.seed
    data.setdefault("method", RandomizationMethod.SIMPLE.value)
    return RandomizationConfig.from_dict(data)


def _cmd_sequence(args: argparse.Namespace) -> None:
    config = _load_config(args)
    seq = generate_sequence(config, args.n, strict=args.strict)

    if args.format == "json":
        print(json.dumps(sequence_report(seq), indent=2))
        return
    if args.format == "csv":
        print(seq.to_frame().to_csv(index=False), end="")
        return

    print(f"Method: {seq.method.value}  Ratio: {fmt_ratio(seq.ratio)}  Seed: {seq.seed}")
    if seq.outcome.fell_back:
        print(f"Fallback: {seq.requested.value} -> {seq.method.value} ({seq.outcome.reason})")
    print(seq.to_frame().to_string(index=False))
    print()
    print(allocation_summary(seq).to_string(index=False))


def _cmd_sample_size(args: argparse.Namespace) -> None:
    req = SampleSizeRequest(
        effect_size=args.effect_size,
        design_type=args.design,
        alpha=args.alpha,
        power=args.power,
        factors=args.factors,
        multiple_comparisons=args.multiple_comparisons,
        comparisons=args.comparisons,
        dropout_rate=args.dropout_rate,
    )
    res = calculate_breakdown(req)
    if args.json:
        print(json.dumps(as_report_dict(res), indent=2))
        return
    print(f"Sample size: {res.n_total}")
    print(f"  base (16/d^2): {res.n_base}")
    for adj in res.adjustments:
        print(f"  - {adj}")


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="studydesign", description="Randomization sequences and sample sizes.")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr")
    sub = ap.add_subparsers(dest="command", required=True)

    sp = sub.add_parser("sequence", help="Generate an allocation sequence")
    sp.add_argument("-n", type=int, required=True, help="Number of participants")
    sp.add_argument("--method", choices=[m.value for m in RandomizationMethod])
    sp.add_argument("--ratio", help="Allocation ratio, e.g. 1:1 or 2:1")
    sp.add_argument("--block-size", type=int)
    sp.add_argument("--seed", type=int)
    sp.add_argument("--config", help="JSON file with a randomization config")
    sp.add_argument("--format", choices=["table", "json", "csv"], default="table")
    sp.add_argument("--strict", action="store_true", help="Fail instead of falling back")
    sp.set_defaults(func=_cmd_sequence)

    ss = sub.add_parser("sample-size", help="Minimum number of participants")
    ss.add_argument("--effect-size", type=float, required=True)
    ss.add_argument("--design", default=StudyDesignType.RCT.name.lower(),
                    help="Design type, e.g. rct, crossover, factorial, adaptive, cohort")
    ss.add_argument("--alpha", type=float, default=0.05)
    ss.add_argument("--power", type=float, default=0.8)
    ss.add_argument("--factors", type=int)
    ss.add_argument("--multiple-comparisons", action="store_true")
    ss.add_argument("--comparisons", type=int)
    ss.add_argument("--dropout-rate", type=float)
    ss.add_argument("--json", action="store_true")
    ss.set_defaults(func=_cmd_sample_size)
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)
    try:
        args.func(args)
    except StudyDesignError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
