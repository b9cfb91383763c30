##########################################################################################
#
# Script name: test_cli.py
#
# Description: CLI argument mapping and payload output tests.
#
##########################################################################################

import json
import logging
from pathlib import Path

from balanced_news import main as cli
from balanced_news.models import ServiceResponse
from balanced_news.render import bias_breakdown, write_payload


PAYLOAD = {
    'totalArticles': 3,
    'articles': [{'bias': 'left'}, {'bias': 'center'}, {'bias': ''}],
    'fetchedAt': '2024-05-01T12:00:00+00:00',
    'endpoint': 'search',
    'parameters': {'q': 'election'},
}


def test_bias_breakdown_counts_unclassified() -> None:
    counts = bias_breakdown(PAYLOAD)
    assert counts['left'] == 1
    assert counts['center'] == 1
    assert counts['right'] == 0
    assert counts['unclassified'] == 1


def test_write_payload_creates_parent_directories(tmp_path: Path) -> None:
    path = write_payload(PAYLOAD, str(tmp_path / 'out' / 'news.json'))
    assert json.loads(path.read_text(encoding='utf-8')) == PAYLOAD


def test_main_maps_flags_to_request_and_writes_output(tmp_path: Path, monkeypatch) -> None:
    seen = {}

    def fake_handle_request(raw_params):
        seen.update(raw_params)
        return ServiceResponse(status_code=200, payload=PAYLOAD)

    monkeypatch.setattr(cli, 'handle_request', fake_handle_request)
    output = tmp_path / 'news.json'
    code = cli.main(
        [
            '--query',
            'election',
            '--max',
            '3',
            '--balanced',
            '--cluster',
            'smart',
            '--min-reliability',
            '70',
            '--from',
            '2024-01-01',
            '--output',
            str(output),
            '--log-file',
            str(tmp_path / 'run.log'),
            '-q',
        ]
    )
    assert code == 0
    assert seen['q'] == 'election'
    assert seen['max'] == 3
    assert seen['balanced'] is True
    assert seen['cluster'] == 'smart'
    assert seen['minReliability'] == 70
    assert seen['from'] == '2024-01-01'
    assert json.loads(output.read_text(encoding='utf-8'))['totalArticles'] == 3


def test_main_returns_nonzero_on_failure(tmp_path: Path, monkeypatch, capsys) -> None:
    failure = ServiceResponse(status_code=429, payload={'error': 'Upstream quota exceeded', 'quotaExceeded': True})
    monkeypatch.setattr(cli, 'handle_request', lambda raw_params: failure)
    code = cli.main(['--log-file', str(tmp_path / 'run.log'), '-q'])
    assert code == 1
    assert json.loads(capsys.readouterr().out)['quotaExceeded'] is True


def test_repeated_runs_keep_a_single_console_handler(tmp_path: Path) -> None:
    log_file = str(tmp_path / 'run.log')
    cli.handle_args(['--log-file', log_file, '-q'])
    cli.handle_args(['--log-file', log_file, '-v'])
    console = [handler for handler in cli.log.handlers if type(handler) is logging.StreamHandler]
    assert len(console) == 1
    assert console[0].level == logging.DEBUG
    assert console[0] in cli.root_log.handlers
    stale = [
        handler
        for handler in cli.root_log.handlers
        if type(handler) is logging.StreamHandler and handler is not console[0]
    ]
    assert stale == []
