"""
fabisearch - one command, four modes.

    fabisearch detect data.csv                         Detect change points (default parameters)
    fabisearch detect data.csv --mindist 60 --rank 3   Override parameters
    fabisearch detect data.csv --config run.yaml --output cps.csv
    fabisearch rank data.csv                           Select the factorization rank
    fabisearch network data.csv --lam 0.5 --changepoints 100
    fabisearch generate two-regimes --output sim.csv   Generate a simulated dataset
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

MODES = ('detect', 'rank', 'network', 'generate')


def main(argv: Optional[List[str]] = None):
    argv = sys.argv[1:] if argv is None else list(argv)

    # Dispatch: `fabisearch detect ...` vs `rank ...` vs `network ...` vs `generate ...`
    if argv and argv[0] == 'detect':
        _run(_detect_main, argv[1:])
    elif argv and argv[0] == 'rank':
        _run(_rank_main, argv[1:])
    elif argv and argv[0] == 'network':
        _run(_network_main, argv[1:])
    elif argv and argv[0] == 'generate':
        _run(_generate_main, argv[1:])
    else:
        print(__doc__.strip())
        if argv and argv[0] not in ('-h', '--help'):
            print(f"\nError: unknown mode {argv[0]!r}. Choose one of {list(MODES)}")
            sys.exit(2)


def _run(handler, argv: List[str]):
    from factorize import FabisearchError

    try:
        handler(argv)
    except FabisearchError as e:
        print(f"Error: {e}")
        sys.exit(1)


def _configure_logging(verbose: bool):
    if verbose:
        logging.basicConfig(
            level=logging.INFO,
            format='%(asctime)s - %(levelname)s - %(message)s',
        )


def _input_path(raw: str) -> Path:
    path = Path(raw).expanduser().resolve()
    if not path.exists():
        print(f"Error: {path} does not exist")
        sys.exit(1)
    return path


def _add_common(parser: argparse.ArgumentParser):
    parser.add_argument('path', help='Series file (.csv or .parquet), time in rows')
    parser.add_argument('--no-header', action='store_true',
                        help='CSV has no header row')
    parser.add_argument('--seed', type=int, default=None, help='Run seed (default: random)')
    parser.add_argument('--verbose', action='store_true', help='Log progress to stderr')


def _detect_main(argv: List[str]):
    parser = argparse.ArgumentParser(
        prog='fabisearch detect',
        description='Detect change points in the network structure of a series.',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
examples:
  fabisearch detect sim.csv
  fabisearch detect sim.csv --mindist 99 --rank 3 --alpha p-value
  fabisearch detect sim.csv --config run.yaml --workers 8 --output cps.parquet
""",
    )
    _add_common(parser)
    parser.add_argument('--config', help='YAML file with run parameters')
    parser.add_argument('--mindist', type=int, help='Minimum segment length (default: 35)')
    parser.add_argument('--restarts', type=int, help='NMF restarts per fit (default: 50)')
    parser.add_argument('--n-rep', dest='n_rep', type=int,
                        help='Refit / permutation repetitions (default: 100)')
    parser.add_argument('--alpha', help="Significance level, or 'p-value' (default: 0.05)")
    parser.add_argument('--rank', help="Factorization rank, or 'optimal' (default: optimal)")
    parser.add_argument('--algorithm', choices=['brunet', 'lee', 'cd'], help='NMF algorithm')
    parser.add_argument('--test', dest='test_kind', choices=['t-test', 'wilcoxon', 'ks'],
                        help='Significance test (default: t-test)')
    parser.add_argument('--correction', choices=['bh', 'none'],
                        help='Multiple testing correction (default: bh)')
    parser.add_argument('--enclosing', choices=['adjacent', 'midpoint'],
                        help="Block each split is tested in: 'adjacent' (default) spans the previous "
                             "to the next split, 'midpoint' the midpoints between neighbouring splits")
    parser.add_argument('--workers', dest='n_jobs', type=int,
                        help='Permutation workers, -1 for all cores (default: FABISEARCH_WORKERS env or 1)')
    parser.add_argument('--output', help='Write results to .csv or .parquet')

    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    path = _input_path(args.path)

    from fabisearch.io import read_series, write_frame
    from orchestration import DetectionConfig, detect_change_points, load_config

    config = load_config(args.config) if args.config else DetectionConfig()
    overrides = {
        name: getattr(args, name)
        for name in ('mindist', 'restarts', 'n_rep', 'alpha', 'rank', 'algorithm',
                     'test_kind', 'correction', 'enclosing', 'n_jobs', 'seed')
        if getattr(args, name) is not None
    }

    series = read_series(path, has_header=not args.no_header)
    result = detect_change_points(series, config, **overrides)

    print(f"Rank: {result.rank}")
    print(f"Seed: {result.seed}")
    print(f"Compute time: {result.compute_time}")
    frame = result.to_frame()
    if frame.height:
        print(frame)
    else:
        print("No change points found")

    if args.output:
        out = write_frame(frame, Path(args.output).expanduser())
        print(f"  -> {out}")


def _rank_main(argv: List[str]):
    parser = argparse.ArgumentParser(
        prog='fabisearch rank',
        description='Select the NMF rank of a series by permutation.',
    )
    _add_common(parser)
    parser.add_argument('--restarts', type=int, default=50, help='NMF restarts per fit (default: 50)')
    parser.add_argument('--algorithm', choices=['brunet', 'lee', 'cd'], default='brunet')

    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    path = _input_path(args.path)

    from fabisearch.io import read_series
    from factorize import select_rank
    from inference.streams import RANK, resolve_seed, stream

    series = read_series(path, has_header=not args.no_header)
    seed = resolve_seed(args.seed)
    rank = select_rank(series, args.restarts, args.algorithm, rng=stream(seed, RANK))
    print(f"Optimal rank: {rank}")


def _network_main(argv: List[str]):
    parser = argparse.ArgumentParser(
        prog='fabisearch network',
        description='Estimate the network of each stationary segment.',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
examples:
  fabisearch network sim.csv --lam 0.5
  fabisearch network sim.csv --lam 2 --lam 3 --rank 3 --changepoints 100
  fabisearch network sim.csv --lam 0.5 --output-dir networks/
""",
    )
    _add_common(parser)
    parser.add_argument('--lam', type=float, action='append', required=True,
                        help='Cluster count (> 1) or consensus cutoff in [0, 1]; repeatable')
    parser.add_argument('--restarts', type=int, default=50, help='NMF restarts (default: 50)')
    parser.add_argument('--rank', default='optimal', help="Rank, or 'optimal' (default)")
    parser.add_argument('--algorithm', choices=['brunet', 'lee', 'cd'], default='brunet')
    parser.add_argument('--changepoints', type=int, nargs='*', default=None,
                        help='Split times separating stationary segments')
    parser.add_argument('--output-dir', help='Write one CSV adjacency matrix per segment and lam')

    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    path = _input_path(args.path)

    from fabisearch.io import read_series, write_series
    from network import estimate_network
    from orchestration import FixedRank, parse_rank

    rank = parse_rank(args.rank)
    series = read_series(path, has_header=not args.no_header)
    output = estimate_network(
        series,
        args.lam,
        restarts=args.restarts,
        rank=rank.value if isinstance(rank, FixedRank) else None,
        algorithm=args.algorithm,
        changepoints=args.changepoints,
        seed=args.seed,
    )
    # Normalize to [segment][lam]
    per_segment = output if len(args.changepoints or []) else [output]

    for j, mats in enumerate(per_segment, start=1):
        for lam, adjacency in zip(args.lam, mats):
            n_edges = int(adjacency.sum()) // 2
            print(f"Segment {j}, lam={lam:g}: {n_edges} edges among {adjacency.shape[0]} variables")
            if args.output_dir:
                out = Path(args.output_dir).expanduser() / f"network_segment{j}_lam{lam:g}.csv"
                write_series(adjacency, out)
                print(f"  -> {out}")


def _generate_main(argv: List[str]):
    parser = argparse.ArgumentParser(
        prog='fabisearch generate',
        description='Generate simulated datasets.',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
examples:
  fabisearch generate two-regimes
  fabisearch generate two-regimes --output sim.parquet --seed 1
""",
    )
    subparsers = parser.add_subparsers(dest='dataset', required=True)

    regimes_parser = subparsers.add_parser('two-regimes', help='Two Gaussian regimes, one change point')
    regimes_parser.add_argument('--output', type=str, default='two_regimes.csv',
                                help='Output file, .csv or .parquet (default: two_regimes.csv)')
    regimes_parser.add_argument('--n-time', dest='n_time', type=int, default=200,
                                help='Number of time points (default: 200)')
    regimes_parser.add_argument('--n-vars', dest='n_vars', type=int, default=80,
                                help='Number of variables (default: 80)')
    regimes_parser.add_argument('--n-clusters', dest='n_clusters', type=int, default=2,
                                help='Clusters per regime (default: 2)')
    regimes_parser.add_argument('--within', type=float, default=0.75,
                                help='Within-cluster correlation (default: 0.75)')
    regimes_parser.add_argument('--between', type=float, default=0.2,
                                help='Between-cluster correlation (default: 0.2)')
    regimes_parser.add_argument('--change-at', dest='change_at', type=int, default=100,
                                help='First row of the second regime (default: 100)')
    regimes_parser.add_argument('--seed', type=int, default=None)
    regimes_parser.add_argument('--verbose', action='store_true')

    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    if args.dataset == 'two-regimes':
        from fabisearch.generators.regimes import generate_two_regimes
        path = generate_two_regimes(
            Path(args.output).expanduser(),
            n_time=args.n_time,
            n_vars=args.n_vars,
            n_clusters=args.n_clusters,
            within=args.within,
            between=args.between,
            change_at=args.change_at,
            seed=args.seed,
        )
        print(f"Two regimes: {args.n_time} x {args.n_vars}, change at {args.change_at}")
        print(f"  -> {path}")


if __name__ == "__main__":
    main()
