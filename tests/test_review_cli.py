"""Tests for the review server launcher."""

from unittest.mock import patch

import pytest

from rubriccheck.libs.storage import JsonFileStore, MemoryStore
from rubriccheck.tools.review_interface.cli import apply_overrides, build_controller, build_parser, main


@pytest.fixture
def configs():
    return {
        'openai': {'model': 'gpt-4o-mini'},
        'grading': {'quota_cooldown_seconds': 30},
        'evidence': {'min_length': 8},
        'server': {'host': '0.0.0.0', 'port': 9000},
    }


@pytest.fixture(autouse=True)
def no_openai():
    with patch('rubriccheck.grading.grader.ChatClient') as client_cls:
        yield client_cls


def test_parser_defaults_from_config(configs):
    args = build_parser(configs).parse_args([])

    assert args.host == '0.0.0.0'
    assert args.port == 9000
    assert not args.no_draft


def test_apply_overrides(configs):
    args = build_parser(configs).parse_args(['-m', 'gpt-4o', '--cache-dir', 'cache'])

    configs = apply_overrides(configs, args)

    assert configs['openai']['model'] == 'gpt-4o'
    assert configs['grading']['cache_dir'] == 'cache'


def test_build_controller_in_memory(configs):
    controller = build_controller(configs)

    assert controller.cooldown_seconds == 30
    assert controller.min_evidence_length == 8
    assert isinstance(controller.drafts.store, MemoryStore)
    assert controller.grader.cache.store is controller.drafts.store


def test_build_controller_file_backed(configs, tmp_path):
    configs['grading']['cache_dir'] = str(tmp_path)

    controller = build_controller(configs, keep_drafts=False)

    assert controller.drafts is None
    assert isinstance(controller.grader.cache.store, JsonFileStore)


def test_main_starts_server(configs):
    with patch('rubriccheck.tools.review_interface.cli.load_all_configs', return_value=configs), \
         patch('rubriccheck.tools.review_interface.cli.run_server') as run_server, \
         patch('rubriccheck.tools.review_interface.cli.create_app') as create_app:
        main(['--no-browser', '--port', '5050'])

    run_server.assert_called_once_with(host='0.0.0.0', port=5050, debug=False)
    assert create_app.call_args.args[0].grader is not None
