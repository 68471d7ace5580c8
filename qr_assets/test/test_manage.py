"""
Admin command line tests against a throwaway SQLite file
"""
import json

import pytest

import manage


@pytest.fixture
def cli(monkeypatch, tmp_path, capsys):
    monkeypatch.setenv('DATABASE_URL', f"sqlite:///{tmp_path / 'cli.db'}")
    monkeypatch.setenv('QR_LOW_WATER_MARK', '5')
    monkeypatch.setenv('QR_REPLENISH_COUNT', '8')

    def run(*argv):
        return manage.main(list(argv))

    assert run('build') == 0
    capsys.readouterr()
    return run


def last_output(capsys):
    return json.loads(capsys.readouterr().out)


def test_build_with_seed(cli, capsys):
    assert cli('build', '--seed') == 0

    output = last_output(capsys)
    assert output['built'] is True
    assert output['inventory']['created'] == 8


def test_register_resolve_retire(cli, capsys):
    cli('generate-batch', '3')
    token = last_output(capsys)['sample_tokens'][0]

    assert cli('register', token, 'venue-1', 'table', 'table-9') == 0
    registered = last_output(capsys)
    assert registered['status'] == 'REGISTERED'
    assert registered['resource_scope'] == 'TABLE'
    assert registered['activated_by'] == 'admin-cli'

    assert cli('summary', 'venue-1') == 0
    assert last_output(capsys)['counts']['TABLE'] == 1

    assert cli('retire', token) == 0
    assert last_output(capsys)['status'] == 'RETIRED'

    assert cli('resolve', token.swapcase()) == 0
    assert last_output(capsys)['token'] == token


def test_typed_failure_returns_error_code(cli, capsys):
    assert cli('resolve', 'missing01') == 1

    output = last_output(capsys)
    assert output['error'] == 'NotFound'
    assert 'missing01' in output['message']


def test_check_inventory_and_list(cli, capsys):
    assert cli('check-inventory', '--low-water', '10', '--replenish', '12') == 0
    assert last_output(capsys)['created'] == 12

    assert cli('list', '--page-size', '5', '--status', 'UNREGISTERED') == 0
    listing = last_output(capsys)
    assert listing['total'] == 12
    assert len(listing['items']) == 5
    assert listing['summary']['available_unregistered'] == 12


def test_register_rejects_unknown_scope(cli):
    with pytest.raises(SystemExit):
        cli('register', 'abcdefgh', 'venue-1', 'ROOM')
