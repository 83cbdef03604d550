#!/usr/bin/env python3
"""
somrec CLI for training the map and running similarity queries.
"""
import argparse
import logging
import pprint
import sys
from pathlib import Path

from tqdm import tqdm

from .cache import ModelCache
from .catalog import InMemoryCatalog, parse_link_type
from .config import somrec_config
from .engine import FeaturesEngine
from .features.sources import JsonFeatureSource
from .types import LoadOutcome, Progress, TrackArtistLinkType


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def _apply_overrides(args) -> None:
    if getattr(args, 'iterations', None):
        somrec_config.SOM_ITERATION_COUNT = args.iterations
    if getattr(args, 'seed', None) is not None:
        somrec_config.SOM_SEED = args.seed
    if getattr(args, 'cache_dir', None):
        somrec_config.SOM_CACHE_DIR = args.cache_dir


def _build_engine(args) -> FeaturesEngine:
    catalog_path = Path(args.catalog)
    if not catalog_path.exists():
        print(f"Error: Catalog file not found: {catalog_path}")
        sys.exit(1)

    features_dir = Path(args.features_dir)
    if not features_dir.exists():
        print(f"Error: Features directory not found: {features_dir}")
        sys.exit(1)

    return FeaturesEngine(
        InMemoryCatalog.from_json(catalog_path),
        JsonFeatureSource(features_dir),
        cache=ModelCache(somrec_config.cache_dir),
        config=somrec_config,
    )


def _load_engine(engine: FeaturesEngine, force: bool = False) -> LoadOutcome:
    with tqdm(total=somrec_config.iteration_count, desc="Training network") as pbar:
        def on_progress(progress: Progress) -> None:
            pbar.total = progress.total_iterations
            pbar.update(1)

        outcome = engine.load(force_reload=force, progress_callback=on_progress)

    if outcome is LoadOutcome.NO_TRAINABLE_DATA:
        print("No track has usable features, nothing to train")
        sys.exit(1)
    return outcome


def train(args):
    """Train the map (or reuse the cache unless --force)."""
    setup_logging(args.verbose)
    _apply_overrides(args)
    somrec_config.validate_config()

    engine = _build_engine(args)
    outcome = _load_engine(engine, force=args.force)

    model = engine.model
    print(f"Outcome: {outcome.value}")
    if model is not None:
        network = model.network
        print(f"Grid: {network.width}x{network.height}, dimensions: {network.dimensions}")
        print(f"Tracks classified: {len(model.track_positions)}")
        print(f"Median neighbor distance: {engine.median_neighbor_distance:.4f}")


def _print_results(label: str, ids: list[int]) -> None:
    print(f"{label} ({len(ids)}):")
    for entity_id in ids:
        print(f"  {entity_id}")


def similar_tracks(args):
    setup_logging(args.verbose)
    _apply_overrides(args)
    engine = _build_engine(args)
    _load_engine(engine)

    if args.track_list is not None:
        ids = engine.get_similar_tracks_from_track_list(args.track_list, args.count)
    elif args.track:
        ids = engine.get_similar_tracks(args.track, args.count)
    else:
        print("Error: pass --track or --track-list")
        sys.exit(1)
    _print_results("Similar tracks", ids)


def similar_releases(args):
    setup_logging(args.verbose)
    _apply_overrides(args)
    engine = _build_engine(args)
    _load_engine(engine)
    _print_results("Similar releases", engine.get_similar_releases(args.release, args.count))


def similar_artists(args):
    setup_logging(args.verbose)
    _apply_overrides(args)
    engine = _build_engine(args)
    _load_engine(engine)

    try:
        link_types = [parse_link_type(value) for value in args.link_type] or list(TrackArtistLinkType)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)
    _print_results(
        "Similar artists",
        engine.get_similar_artists(args.artist, link_types, args.count),
    )


def cache_info(args):
    setup_logging(args.verbose)
    _apply_overrides(args)
    pprint.pprint(ModelCache(somrec_config.cache_dir).get_cache_info())


def clear_cache(args):
    setup_logging(args.verbose)
    _apply_overrides(args)
    ModelCache(somrec_config.cache_dir).invalidate()
    print(f"Cleared {somrec_config.cache_dir}")


def show_config(args):
    setup_logging(args.verbose)
    _apply_overrides(args)
    try:
        somrec_config.validate_config()
        print("✅ Configuration is valid")
    except ValueError as e:
        print(f"❌ Configuration error: {e}")
        sys.exit(1)
    somrec_config.print_config()


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="somrec - SOM similarity over audio features",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s train --catalog catalog.json --features-dir features/
  %(prog)s train --catalog catalog.json --features-dir features/ --force
  %(prog)s similar-tracks --catalog catalog.json --features-dir features/ --track 12
  %(prog)s similar-artists --catalog catalog.json --features-dir features/ --artist 3 --link-type performer
  %(prog)s cache-info
        """
    )
    parser.add_argument('--verbose', '-v', action='store_true', help='Verbose output')
    parser.add_argument('--cache-dir', help='Model cache directory')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    def add_data_args(p):
        p.add_argument('--catalog', required=True, help='Catalog JSON file')
        p.add_argument('--features-dir', required=True, help='Directory of <track_id>.json analysis files')
        p.add_argument('--iterations', type=int, help='Training iterations')
        p.add_argument('--seed', type=int, help='Random seed')

    train_parser = subparsers.add_parser('train', help='Train the map or reuse the cached model')
    add_data_args(train_parser)
    train_parser.add_argument('--force', action='store_true', help='Ignore the cache and retrain')
    train_parser.set_defaults(func=train)

    tracks_parser = subparsers.add_parser('similar-tracks', help='Find similar tracks')
    add_data_args(tracks_parser)
    tracks_parser.add_argument('--track', type=int, action='append', default=[], help='Track ID (repeatable)')
    tracks_parser.add_argument('--track-list', type=int, help='Track list ID')
    tracks_parser.add_argument('--count', '-n', type=int, default=10, help='Maximum results')
    tracks_parser.set_defaults(func=similar_tracks)

    releases_parser = subparsers.add_parser('similar-releases', help='Find similar releases')
    add_data_args(releases_parser)
    releases_parser.add_argument('--release', type=int, required=True, help='Release ID')
    releases_parser.add_argument('--count', '-n', type=int, default=10, help='Maximum results')
    releases_parser.set_defaults(func=similar_releases)

    artists_parser = subparsers.add_parser('similar-artists', help='Find similar artists')
    add_data_args(artists_parser)
    artists_parser.add_argument('--artist', type=int, required=True, help='Artist ID')
    artists_parser.add_argument(
        '--link-type', action='append', default=[],
        help='Artist link type, e.g. performer, composer (repeatable, default: all)'
    )
    artists_parser.add_argument('--count', '-n', type=int, default=10, help='Maximum results')
    artists_parser.set_defaults(func=similar_artists)

    info_parser = subparsers.add_parser('cache-info', help='Show cached model information')
    info_parser.set_defaults(func=cache_info)

    clear_parser = subparsers.add_parser('clear-cache', help='Delete the cached model')
    clear_parser.set_defaults(func=clear_cache)

    config_parser = subparsers.add_parser('show-config', help='Validate and print configuration')
    config_parser.set_defaults(func=show_config)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return

    args.func(args)


if __name__ == '__main__':
    main()
