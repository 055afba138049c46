import pytest
from click.testing import CliRunner
from hostboot.CLI import main as cli_main
from hostboot.CLI.main import cli
from hostboot.errors import AddressDiscoveryError

def test_cli_help():
    runner = CliRunner()
    result = runner.invoke(cli, ['--help'])
    assert result.exit_code == 0
    assert 'Bootstrap this host' in result.output
    assert 'still act on the real host' in ' '.join(result.output.split())

def test_cli_plan_lists_steps_in_order():
    runner = CliRunner()
    result = runner.invoke(cli, ['plan'])
    assert result.exit_code == 0
    lines = result.output.splitlines()
    assert lines[0] == '1. packages'
    assert lines[-1] == '9. verify'

def test_cli_render(tmp_path):
    runner = CliRunner()
    out = tmp_path / 'out'
    result = runner.invoke(cli, ['render', '--out', str(out), '--address', '10.1.1.1'])
    assert result.exit_code == 0, result.output
    assert 'advertise_addr = "10.1.1.1"' in (out / 'consul.hcl').read_text()
    assert 'rpc  = "10.1.1.1"' in (out / 'nomad.hcl').read_text()
    assert (out / 'nomad.service').exists()
    assert (out / 'consul.service').exists()

def test_cli_render_with_config_file(tmp_path, monkeypatch):
    config_file = tmp_path / 'hostboot.yml'
    config_file.write_text('address: ${HOST_IP}\nconsul:\n  datacenter: lab\n')
    monkeypatch.setenv('HOST_IP', '10.2.2.2')
    out = tmp_path / 'out'
    result = CliRunner().invoke(cli, ['-c', str(config_file), 'render', '--out', str(out)])
    assert result.exit_code == 0, result.output
    consul = (out / 'consul.hcl').read_text()
    assert 'bind_addr = "10.2.2.2"' in consul
    assert 'datacenter = "lab"' in consul

def test_cli_invalid_config_exits_nonzero(tmp_path):
    config_file = tmp_path / 'hostboot.yml'
    config_file.write_text('registry:\n  account_id: "<ADD_ACCOUNT_ID>"\n')
    result = CliRunner().invoke(cli, ['-c', str(config_file), 'plan'])
    assert result.exit_code == 1
    assert '12 digits' in result.output

def test_cli_address(monkeypatch):
    monkeypatch.setattr(cli_main, 'discover_primary_address', lambda *args: '10.3.3.3')
    result = CliRunner().invoke(cli, ['address'])
    assert result.exit_code == 0
    assert result.output.strip() == '10.3.3.3'

def test_cli_address_missing(monkeypatch):
    def no_address(*args):
        raise AddressDiscoveryError('No global-scope IPv4 address on any interface')
    monkeypatch.setattr(cli_main, 'discover_primary_address', no_address)
    result = CliRunner().invoke(cli, ['address'])
    assert result.exit_code == 1
    assert 'No global-scope IPv4 address' in result.output

def test_cli_apply_rejects_unknown_step():
    result = CliRunner().invoke(cli, ['apply', '--only', 'bogus'])
    assert result.exit_code == 2
