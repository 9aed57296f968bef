#!/usr/bin/env python3
"""
geoprec - Main Entry Point
"""

import logging
import sys


def main():
    """Main entry point"""
    try:
        from geoprec.geo_cli.cli import main as cli_main

        return cli_main()

    except KeyboardInterrupt:
        print("\nCancelled by user", file=sys.stderr)
        return 130

    except Exception as e:
        logging.getLogger(__name__).error(f"Unexpected error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
