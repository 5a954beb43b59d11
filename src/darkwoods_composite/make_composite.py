"""Clearest-pixel Sentinel-2 composite entry point for darkwoods_composite."""
import argparse
import logging
import sys
from typing import List, Optional

from .config import ConfigurationError
from .config.cli import add_composite_args, build_composite_config
from .pipeline import run_pipeline
from .sentinel2.stac_client import DateRangeError

LOGGER = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments for composite generation.

    Args:
        argv: Optional argument list. If None, uses sys.argv.
    """
    parser = argparse.ArgumentParser(
        description=(
            "Build cloud-masked, clearest-pixel Sentinel-2 composites with "
            "EVI, BAI and NBR bands for an area of interest."
        )
    )
    add_composite_args(parser)

    args = parser.parse_args(argv)

    # If YAML config is provided, defer validation to config loading
    if args.config is None:
        if not args.aoi:
            parser.error("--aoi or COMPOSITE_AOI must be supplied.")
        if not args.years:
            parser.error("--years must be supplied.")

    return args


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = build_composite_config(args)
        results = run_pipeline(config)
    except (ConfigurationError, DateRangeError, FileNotFoundError, ValueError) as e:
        LOGGER.error("Configuration error: %s", e)
        return 1
    except Exception as e:
        LOGGER.exception("Unexpected error while building composites: %s", e)
        return 1

    for result in results:
        LOGGER.info(
            "%s: %d scenes, %d file(s) written",
            result.year,
            result.image_count,
            len(result.outputs),
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())
