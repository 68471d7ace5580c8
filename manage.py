#!/usr/bin/env python3
"""
Admin run script for the QR asset inventory
"""

import argparse
import json
import sys

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from qr_assets import create_app
from qr_assets.build import build_database
from qr_assets.errors import QRAssetError
from qr_assets.logger import get_logger
from qr_assets.services.qr_asset_service import QRAssetService, scope_choices

logger = get_logger("qr_assets.manage")


def parse_arguments(argv=None):
    """Parse command line arguments for admin commands"""
    parser = argparse.ArgumentParser(description='QR Asset Inventory')
    subparsers = parser.add_subparsers(dest='command', required=True)

    build = subparsers.add_parser('build', help='Create database tables')
    build.add_argument('--seed', action='store_true',
                       help='Top up unregistered inventory to the low-water mark after building')

    batch = subparsers.add_parser('generate-batch', help='Create a batch of unregistered QR assets')
    batch.add_argument('count', type=int)

    check = subparsers.add_parser('check-inventory', help='Replenish inventory if below the low-water mark')
    check.add_argument('--low-water', type=int, default=None)
    check.add_argument('--replenish', type=int, default=None)

    register = subparsers.add_parser('register', help='Bind a token to a venue resource')
    register.add_argument('token')
    register.add_argument('venue_id')
    register.add_argument('scope', type=str.upper, choices=scope_choices())
    register.add_argument('resource_id', nargs='?', default=None)

    retire = subparsers.add_parser('retire', help='Retire a registered token')
    retire.add_argument('token')

    resolve = subparsers.add_parser('resolve', help='Look up a token')
    resolve.add_argument('token')

    summary = subparsers.add_parser('summary', help='Per-scope asset counts for a venue')
    summary.add_argument('venue_id')

    listing = subparsers.add_parser('list', help='List assets with inventory summary')
    listing.add_argument('--page', type=int, default=1)
    listing.add_argument('--page-size', type=int, default=20)
    listing.add_argument('--status', default=None)
    listing.add_argument('--venue-id', default=None)
    listing.add_argument('--batch-id', default=None)

    return parser.parse_args(argv)


def run_command(args):
    if args.command == 'build':
        report = build_database(seed_inventory=args.seed)
        return {'built': True, 'inventory': report}

    service = QRAssetService()
    if args.command == 'generate-batch':
        return service.generate_batch(args.count)
    if args.command == 'check-inventory':
        return service.check_and_replenish(args.low_water, args.replenish)
    if args.command == 'register':
        return service.register(args.token, args.venue_id, args.scope, args.resource_id, activated_by='admin-cli')
    if args.command == 'retire':
        return service.retire(args.token)
    if args.command == 'resolve':
        return service.resolve(args.token)
    if args.command == 'summary':
        return service.venue_resource_summary(args.venue_id)
    if args.command == 'list':
        return service.list_assets(
            page=args.page,
            page_size=args.page_size,
            status=args.status,
            venue_id=args.venue_id,
            batch_id=args.batch_id,
        )
    raise ValueError(f"Unknown command {args.command}")


def main(argv=None):
    args = parse_arguments(argv)
    app = create_app()

    with app.app_context():
        try:
            result = run_command(args)
        except QRAssetError as e:
            logger.warning(f"{args.command} failed: {e.message}")
            print(json.dumps({'error': type(e).__name__, 'message': e.message}))
            return 1

    print(json.dumps(result, indent=2, default=str))
    return 0


if __name__ == '__main__':
    sys.exit(main())
