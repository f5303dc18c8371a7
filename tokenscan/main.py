"""Entry point: scan one mint address and print the report as JSON."""

import argparse
import asyncio
import json
import sys

from loguru import logger

from config.settings import settings
from tokenscan.parsers.exceptions import AddressValidationError, ScanError
from tokenscan.parsers.rpc.exceptions import RpcError
from tokenscan.parsers.scanner import build_scanner
from tokenscan.utils.logger import setup_logger

EXIT_OK = 0
EXIT_SCAN_FAILED = 1
EXIT_INVALID_ADDRESS = 2


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Assess the risk of a token mint")
    parser.add_argument("mint", help="token mint address")
    parser.add_argument("--json-logs", action="store_true", default=settings.json_logs)
    parser.add_argument("--log-level", default=settings.log_level)
    return parser.parse_args(argv)


async def run(mint: str) -> int:
    async with build_scanner(settings) as scanner:
        try:
            report = await scanner.scan(mint)
        except AddressValidationError as e:
            logger.error(str(e))
            return EXIT_INVALID_ADDRESS
        except (ScanError, RpcError) as e:
            logger.error(f"Scan failed: {e}")
            return EXIT_SCAN_FAILED
        print(json.dumps(report.to_dict(), indent=2))
        return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logger(json_logs=args.json_logs, level=args.log_level, log_file=settings.log_file)
    return asyncio.run(run(args.mint))


if __name__ == "__main__":
    sys.exit(main())
