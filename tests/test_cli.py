"""
Test the command line interface.
"""

from typer.testing import CliRunner

from worker_fleet.main import app


runner = CliRunner()


def test_accounts_lists_proxy_assignment(tmp_path):
    wallets = tmp_path / "wallets.txt"
    wallets.write_text("0xAAA\n\n0xBBB\n")
    proxies = tmp_path / "proxy.txt"
    proxies.write_text("http://p1:3128\n")

    result = runner.invoke(app, ["accounts", "--wallets", str(wallets), "--proxies", str(proxies)])

    assert result.exit_code == 0
    assert "0xAAA" in result.output
    assert "0xBBB" in result.output
    assert result.output.count("http://p1:3128") == 2


def test_accounts_without_wallets_fails(tmp_path):
    wallets = tmp_path / "wallets.txt"
    wallets.write_text("")

    result = runner.invoke(app, ["accounts", "--wallets", str(wallets)])

    assert result.exit_code == 1
    assert "No wallets found" in result.output


def test_run_without_wallets_exits(tmp_path, monkeypatch):
    monkeypatch.setattr("worker_fleet.main.setup_logging", lambda **kwargs: None)
    wallets = tmp_path / "wallets.txt"
    wallets.write_text("\n\n")

    result = runner.invoke(
        app,
        ["run", "--wallets", str(wallets), "--proxies", str(tmp_path / "missing.txt")],
    )

    assert result.exit_code == 1


def test_accounts_hide_unsupported_proxy(tmp_path):
    wallets = tmp_path / "wallets.txt"
    wallets.write_text("0xAAA\n")
    proxies = tmp_path / "proxy.txt"
    proxies.write_text("ftp://x\n")

    result = runner.invoke(app, ["accounts", "--wallets", str(wallets), "--proxies", str(proxies)])

    assert result.exit_code == 0
    assert "ftp://x" not in result.output
    assert "No proxy" in result.output
