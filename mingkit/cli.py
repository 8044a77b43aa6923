#!/usr/bin/env python3
"""
MingKit CLI
===========
Command-line interface for Chinese name scoring and generation.

Usage:
    mingkit score 李明华 --birth 1990-12-23 --hour 8
    mingkit generate 李 -g female -n 5 --style poetic
    mingkit chart 1990-12-23 --hour 8
    mingkit cache
"""

import argparse
import json
import logging
import sys
from pathlib import Path

# Add parent to path
_parent = Path(__file__).parent.parent
if str(_parent) not in sys.path:
    sys.path.insert(0, str(_parent))

from mingkit import __version__

# =============================================================================
# Constants
# =============================================================================

GENDERS = ['male', 'female', 'neutral']
STYLES = ['classic', 'modern', 'poetic', 'elegant']
SOURCES = ['any', 'poetry', 'classics', 'idioms']

WARMUP_NAMES = ['李明华', '王思远', '张雨涵', '欧阳文博', '陈嘉怡']

# =============================================================================
# Utilities
# =============================================================================

class Output:
    """Handles CLI output with quiet and JSON mode support."""

    def __init__(self, quiet: bool = False, as_json: bool = False):
        self.quiet = quiet
        self.as_json = as_json

    def print(self, *args, **kwargs):
        if not self.quiet and not self.as_json:
            print(*args, **kwargs)

    def error(self, msg: str):
        print(f"Error: {msg}", file=sys.stderr)

    def success(self, msg: str):
        if not self.quiet and not self.as_json:
            print(f"OK: {msg}")

    def json(self, data):
        print(json.dumps(data, ensure_ascii=False, indent=2))


def split_list(value: str) -> list:
    """Split a comma-separated option (``木,火`` or ``wood,fire``)."""
    if not value:
        return []
    return [part.strip() for part in value.replace('，', ',').split(',') if part.strip()]


def parse_birth(args):
    """BirthMoment from --birth/--hour, or None."""
    from mingkit import BirthMoment

    if not getattr(args, 'birth', None):
        if getattr(args, 'hour', None) is not None:
            raise ValueError("--hour needs --birth")
        return None
    return BirthMoment.parse(args.birth, args.hour)


def _ui(args):
    from mingkit.ui import get_ui
    return get_ui(quiet=args.quiet, plain=args.plain)


# =============================================================================
# Commands
# =============================================================================

def cmd_score(args, out: Output):
    """Score a full name."""
    from mingkit import MingKit
    from mingkit.engines.scorer import compare_names

    kit = MingKit()
    birth = parse_birth(args)
    score = kit.score_name(args.name, surname=args.surname, birth=birth)
    ok, issues = kit.scorer.meets_minimum_standards(score)

    other = None
    if args.compare:
        other = kit.score_name(args.compare, surname=args.surname, birth=birth)

    if args.json:
        data = score.to_dict()
        data['meets_standards'] = ok
        data['issues'] = issues
        if other is not None:
            winner, difference = compare_names(score, other)
            data['comparison'] = {
                'other': other.to_dict(),
                'winner': score.full_name if winner == 1 else other.full_name,
                'difference': difference,
            }
        out.json(data)
        return 0

    ui = _ui(args)
    ui.show_score(score)
    if issues:
        out.print("\nBelow minimum standards:")
        for issue in issues:
            out.print(f"  - {issue}")

    if other is not None:
        out.print("")
        ui.show_score(other)
        winner, difference = compare_names(score, other)
        best = score if winner == 1 else other
        out.print(f"\n{best.full_name} wins by {difference} point(s).")

    if args.strict and not ok:
        return 2
    return 0


def cmd_generate(args, out: Output):
    """Generate names for a surname."""
    from mingkit import GenerationRequest, MingKit
    from mingkit.profiler import GenerationProfiler, set_profiler
    from mingkit.quality import filter_by_standards

    request = GenerationRequest.create(
        args.surname,
        gender=args.gender,
        birth=parse_birth(args),
        preferred_elements=split_list(args.prefer),
        avoid_elements=split_list(args.avoid),
        style=args.style,
        source=args.source,
        character_count=args.chars,
        max_results=args.count,
        seed=args.seed,
    )

    profiler = GenerationProfiler(enabled=args.profiling)
    set_profiler(profiler)
    profiler.start()
    try:
        kit = MingKit()
        run = kit.run(request)
    finally:
        profiler.stop()
        set_profiler(None)

    rejected = []
    if args.strict:
        run.names, rejected = filter_by_standards(run.names, kit.scorer)

    if args.json:
        data = run.to_dict()
        if args.profiling:
            data['profile'] = profiler.to_dict()
        out.json(data)
        return 0

    out.print(f"Generating {request.max_results} names for {request.surname} "
              f"({request.gender.value}, {request.style.value}, {request.source.value})...")
    _ui(args).show_run(run, verbose=args.explain)

    if rejected:
        out.print(f"\nDropped {len(rejected)} name(s) below minimum standards:")
        for name, issues in rejected:
            out.print(f"  {name.full_name}: {', '.join(issues)}")

    if args.profiling:
        report = profiler.report()
        if report:
            out.print(report)
        if args.profile_output:
            profiler.save_json(args.profile_output)
            out.print(f"\nProfiling data saved to: {args.profile_output}")

    return 0


def cmd_chart(args, out: Output):
    """Show the four-pillar chart of a birth date."""
    from mingkit import MingKit

    birth = parse_birth(argparse.Namespace(birth=args.date, hour=args.hour))
    analysis = MingKit().chart_for(birth)

    if args.json:
        out.json(analysis.to_dict())
        return 0

    _ui(args).show_chart(analysis)
    return 0


def cmd_cache(args, out: Output):
    """Warm the caches with a few scores and show their statistics."""
    from mingkit import GenerationRequest, MingKit

    kit = MingKit()
    names = args.names or WARMUP_NAMES
    for _ in range(args.rounds):
        for name in names:
            kit.score_name(name)
    if args.generate:
        kit.generate(GenerationRequest.create(args.generate, max_results=5, seed=0))

    stats = kit.cache_stats()
    health = kit.memory_health()
    if args.json:
        out.json({
            kind: {**stats[kind].to_dict(), 'health': health[kind].to_dict()}
            for kind in stats
        })
        return 0

    _ui(args).show_cache(stats, health)
    return 0


# =============================================================================
# Main
# =============================================================================

def main(argv=None):
    parser = argparse.ArgumentParser(
        prog='mingkit',
        description='MingKit - Chinese Name Scoring & Generation',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s score 李明华
  %(prog)s score 李明华 --birth 1990-12-23 --hour 8 --compare 李明轩
  %(prog)s generate 李 -g female -n 5 --style poetic
  %(prog)s generate 欧阳 --prefer 木,火 --chars 1 --seed 7
  %(prog)s chart 1990-12-23 --hour 8
  %(prog)s cache --rounds 3
"""
    )

    parser.add_argument('--version', '-V', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('--quiet', '-q', action='store_true', help='Suppress non-essential output')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging and tracebacks')
    parser.add_argument('--json', '-j', action='store_true', help='Output as JSON')
    parser.add_argument('--plain', action='store_true', help='Plain text instead of rich tables')

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    # --- score ---
    p = subparsers.add_parser('score', aliases=['s'], help='Score a full name')
    p.add_argument('name', help='Full name, surname first')
    p.add_argument('--surname', help='Surname (default: inferred, compound surnames recognised)')
    p.add_argument('--birth', '-b', help='Birth date YYYY-MM-DD')
    p.add_argument('--hour', type=int, help='Birth hour 0-23')
    p.add_argument('--compare', '-c', help='Second name to compare against')
    p.add_argument('--strict', action='store_true', help='Exit 2 when below minimum standards')

    # --- generate ---
    p = subparsers.add_parser('generate', aliases=['gen', 'g'], help='Generate names for a surname')
    p.add_argument('surname', help='Surname')
    p.add_argument('-g', '--gender', choices=GENDERS, default='neutral', help='Gender (default: neutral)')
    p.add_argument('-n', '--count', type=int, help='Number of names (default from app.yaml)')
    p.add_argument('--chars', type=int, choices=[1, 2], default=2, help='Given-name length (default: 2)')
    p.add_argument('--style', choices=STYLES, default='classic', help='Style (default: classic)')
    p.add_argument('--source', choices=SOURCES, default='any', help='Literary source (default: any)')
    p.add_argument('--prefer', help='Preferred elements, comma-separated (e.g. 木,火)')
    p.add_argument('--avoid', help='Elements to avoid, comma-separated')
    p.add_argument('--birth', '-b', help='Birth date YYYY-MM-DD')
    p.add_argument('--hour', type=int, help='Birth hour 0-23')
    p.add_argument('--seed', type=int, help='Random seed for pair sampling')
    p.add_argument('--explain', '-e', action='store_true', help='Show the explanation of each name')
    p.add_argument('--strict', action='store_true', help='Drop names below minimum standards')
    p.add_argument('--profiling', action='store_true', help='Print stage timings')
    p.add_argument('--profile-output', help='Save profiling data to JSON file')

    # --- chart ---
    p = subparsers.add_parser('chart', aliases=['bazi'], help='Show the four-pillar chart of a date')
    p.add_argument('date', help='Birth date YYYY-MM-DD')
    p.add_argument('--hour', type=int, help='Birth hour 0-23')

    # --- cache ---
    p = subparsers.add_parser('cache', help='Show cache statistics after a warm-up')
    p.add_argument('names', nargs='*', help='Names to score for the warm-up')
    p.add_argument('--rounds', type=int, default=2, help='Warm-up rounds (default: 2)')
    p.add_argument('--generate', metavar='SURNAME', help='Also run one generation for SURNAME')

    # Parse
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
    )

    if not args.command:
        parser.print_help()
        return 0

    # Handle aliases
    cmd_map = {
        's': 'score',
        'gen': 'generate', 'g': 'generate',
        'bazi': 'chart',
    }
    command = cmd_map.get(args.command, args.command)

    # Output handler
    out = Output(quiet=args.quiet, as_json=args.json)

    # Dispatch
    commands = {
        'score': cmd_score,
        'generate': cmd_generate,
        'chart': cmd_chart,
        'cache': cmd_cache,
    }

    handler = commands.get(command)
    if handler:
        try:
            return handler(args, out)
        except KeyboardInterrupt:
            out.print("\nCancelled.")
            return 130
        except Exception as e:
            out.error(str(e))
            if args.verbose:
                import traceback
                traceback.print_exc()
            return 1

    parser.print_help()
    return 0


if __name__ == '__main__':
    sys.exit(main())
