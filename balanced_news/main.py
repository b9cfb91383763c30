##########################################################################################
#
# Script name: main.py
#
# Description: CLI entrypoint for fetching a classified, optionally balanced news sample.
#
##########################################################################################

import argparse
import logging
import os
import sys
from datetime import date

from .pipeline import handle_request
from .render import bias_breakdown, render_payload, write_payload


# ****************************************************************************************
# Global data and configuration
# ****************************************************************************************

log = logging.getLogger(os.path.basename(sys.argv[0]))
log.setLevel(logging.DEBUG)
log.propagate = False
formatter = logging.Formatter(
    '%(asctime)-15s [%(funcName)25s:%(lineno)-5s] %(levelname)-8s %(message)s'
)

root_log = logging.getLogger()
root_log.setLevel(logging.DEBUG)


# ****************************************************************************************
# Functions
# ****************************************************************************************


def _configure_file_logging(path: str) -> None:
    if any(isinstance(handler, logging.FileHandler) for handler in log.handlers):
        return
    fh = logging.FileHandler(path, mode='w')
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(formatter)
    log.addHandler(fh)
    if not any(isinstance(handler, logging.FileHandler) for handler in root_log.handlers):
        root_log.addHandler(fh)


def _configure_console_logging(level: int) -> logging.Handler:
    # Replace a console handler left by an earlier call
    for handler in list(log.handlers):
        if type(handler) is logging.StreamHandler:
            log.removeHandler(handler)
            root_log.removeHandler(handler)

    # Log to stderr so stdout stays clean JSON
    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(level)
    ch.setFormatter(formatter)
    log.addHandler(ch)
    root_log.addHandler(ch)
    return ch


def build_request(args: argparse.Namespace) -> dict:
    return {
        'q': args.q,
        'lang': args.lang,
        'country': args.country,
        'max': args.max,
        'category': args.category,
        'expand': args.expand,
        'from': args.date_from,
        'to': args.date_to,
        'bias': args.bias,
        'minReliability': args.min_reliability,
        'balanced': args.balanced,
        'cluster': args.cluster,
    }


# ****************************************************************************************
# Handle the arguments
# ****************************************************************************************


def handle_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='Fetch a politically balanced news sample from GNews.')
    parser.add_argument('--query', dest='q', default='latest news', help='Free-text search query.')
    parser.add_argument('--lang', default='en')
    parser.add_argument('--country', default='us')
    parser.add_argument('--max', type=int, default=10, help='Number of articles to return (1-100).')
    parser.add_argument('--category', default='', help='Topic for the headlines endpoint (e.g. world, business).')
    parser.add_argument('--expand', choices=['summary', 'content'], default='summary')
    parser.add_argument('--from', dest='date_from', default='', help='Inclusive ISO start of the publish window.')
    parser.add_argument('--to', dest='date_to', default='', help='Inclusive ISO end of the publish window.')
    parser.add_argument('--bias', default='', help='Single bias bucket filter, or "default".')
    parser.add_argument('--min-reliability', type=int, default=0)
    parser.add_argument('--balanced', action='store_true', help='Sample evenly across the five bias buckets.')
    parser.add_argument('--cluster', choices=['off', 'title', 'smart'], default='off')
    parser.add_argument('--output', default='', help='Write the JSON payload to this path instead of stdout.')
    parser.add_argument('--log-file', default='balanced_news.log')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging.')
    parser.add_argument('-q', '--quiet', action='store_true', help='Only log errors.')
    args = parser.parse_args(argv)

    _configure_file_logging(args.log_file)

    if args.verbose:
        _configure_console_logging(logging.DEBUG)
    elif args.quiet:
        _configure_console_logging(logging.ERROR)
    else:
        _configure_console_logging(logging.INFO)

    log.info('++++++++++++++++++++++++++++++++++++++++++++++')
    log.info('+  %s', os.path.basename(sys.argv[0]))
    log.info('+  Python Version: %s', sys.version.split()[0])
    log.info('+  Today is: %s', date.today())
    log.info('++++++++++++++++++++++++++++++++++++++++++++++')
    return args


# ****************************************************************************************
# Main
# ****************************************************************************************


def main(argv: list[str] | None = None) -> int:
    args = handle_args(argv)
    response = handle_request(build_request(args))
    if response.status_code != 200:
        log.error('Request failed with status %s: %s', response.status_code, response.payload.get('error'))
    if args.output:
        path = write_payload(response.payload, args.output)
        log.info('Wrote %s article(s) to %s', response.payload.get('totalArticles', 0), path)
    else:
        sys.stdout.write(render_payload(response.payload) + '\n')
    if response.status_code == 200:
        log.info('Bias breakdown: %s', bias_breakdown(response.payload))
    return 0 if response.status_code == 200 else 1


if __name__ == '__main__':
    sys.exit(main())
