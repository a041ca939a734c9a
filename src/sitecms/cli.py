"""
Command line entry point: python -m sitecms <command>
"""

import argparse
import json
import sys
import time
from typing import List, Optional

from sitecms.cache import LocalCache
from sitecms.client import CMSClient
from sitecms.config import get_config
from sitecms.events import ChangeEvent, get_broadcaster
from sitecms.exceptions import SaveError, UploadError
from sitecms.logger import configure_logging, setup_logger
from sitecms.relay import ChangeRelay, ChangeRelayListener
from sitecms.uploads import UploadClient

logger = setup_logger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sitecms", description="Site CMS content sync client")
    parser.add_argument('--config', help="Config file path")
    parser.add_argument('--api-url', help="CMS base URL override")
    parser.add_argument('--cache-dir', help="Cache directory override")
    parser.add_argument('--log-level', help="Logging level (DEBUG, INFO, ...)")

    sub = parser.add_subparsers(dest='command', required=True)

    fetch = sub.add_parser('fetch', help="Print content of a page section")
    fetch.add_argument('page')
    fetch.add_argument('section')
    fetch.add_argument('--cache-only', action='store_true', help="Read the local cache only")

    save = sub.add_parser('save', help="Save content of a page section")
    save.add_argument('page')
    save.add_argument('section')
    save.add_argument('data', help="JSON object, or @path to a JSON file")
    save.add_argument('--relay', action='store_true', help="Also relay the change event")

    stale = sub.add_parser('stale', help="Check whether the cached copy is stale")
    stale.add_argument('page')
    stale.add_argument('section')
    stale.add_argument('updated_at', help="Remote updatedAt timestamp")

    clear = sub.add_parser('clear-cache', help="Clear cached content")
    clear.add_argument('page', nargs='?')
    clear.add_argument('section', nargs='?')

    upload = sub.add_parser('upload', help="Upload an image or document")
    upload.add_argument('path')
    upload.add_argument('--document', action='store_true', help="Upload as document")

    delete = sub.add_parser('delete-file', help="Delete an uploaded file by URL")
    delete.add_argument('url')

    sub.add_parser('watch', help="Print relayed change events")

    return parser


def _load_data(value: str):
    if value.startswith('@'):
        with open(value[1:], 'r') as f:
            return json.load(f)
    return json.loads(value)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    args = _build_parser().parse_args(argv)

    config = get_config(args.config)
    if args.api_url:
        config.set('cms.api_url', args.api_url)
    if args.cache_dir:
        config.set('cache.dir', args.cache_dir)
    configure_logging(args.log_level or config.log_level)

    broadcaster = get_broadcaster()
    cache = LocalCache(config.cache_dir)
    client = CMSClient(config.api_url, cache=cache, broadcaster=broadcaster, timeout=config.timeout)

    if args.command == 'fetch':
        content = client.fetch(args.page, args.section, skip_cache=args.cache_only)
        print(json.dumps(content.to_dict(), indent=2))
        return 0

    if args.command == 'save':
        relay = ChangeRelay(broadcaster, config.relay_port, 'sitecms-cli') if args.relay else None
        try:
            content = client.save(args.page, args.section, _load_data(args.data))
        except SaveError as e:
            print(e.message, file=sys.stderr)
            return 1
        finally:
            if relay is not None:
                relay.close()
        print(json.dumps(content.to_dict(), indent=2))
        return 0

    if args.command == 'stale':
        stale = client.is_stale(args.page, args.section, args.updated_at)
        print("stale" if stale else "fresh")
        return 0

    if args.command == 'clear-cache':
        removed = client.clear_cache(args.page, args.section)
        print(f"Removed {removed} cache entr{'y' if removed == 1 else 'ies'}")
        return 0

    messages: List[str] = []
    uploads = UploadClient(config.api_url, max_document_size=config.max_document_size,
                           on_message=messages.append)

    if args.command == 'upload':
        try:
            url = uploads.upload_file(args.path) if args.document else uploads.upload_image(args.path)
        except UploadError as e:
            print(e.message, file=sys.stderr)
            return 1
        print(url)
        return 0

    if args.command == 'delete-file':
        ok = uploads.delete_file(args.url)
        for message in messages:
            print(message, file=sys.stderr)
        return 0 if ok else 1

    if args.command == 'watch':
        def _print_event(event: ChangeEvent) -> None:
            print(json.dumps({**event.to_dict(), 'source': event.source}))

        listener = ChangeRelayListener(broadcaster, config.relay_host, config.relay_port, 'sitecms-watch')
        with broadcaster.subscribe(_print_event):
            listener.start()
            try:
                while listener.is_running:
                    time.sleep(1)
            except KeyboardInterrupt:
                pass
            finally:
                listener.stop()
        return 0

    return 1


if __name__ == "__main__":
    sys.exit(main())
