"""
Unit tests for the pactkit command line.

``verify`` runs against the example provider served on a real port.
"""

import pytest

from pactkit import cli
from pactkit.core import storage
from pactkit.schemas.interaction import Contract
from tests.conftest import CONSUMER, PROVIDER, make_interaction


@pytest.fixture
def pact_file(sample_contract, tmp_path):
    return storage.save(sample_contract, tmp_path / "pacts")


def _verify_args(server, *extra):
    return [
        "verify",
        "--provider", PROVIDER,
        "--provider-base-url", server.url,
        "--provider-states-url", f"{server.url}/provider-states",
        *extra,
    ]


class TestVerifyCommand:
    """Tests for `pactkit verify`."""

    def test_passing_run_exits_zero(self, settings, provider_server, pact_file, capsys):
        """Test that a passing verification exits 0."""
        code = cli.main(_verify_args(provider_server, "--pact-file", str(pact_file)), settings=settings)
        assert code == cli.EXIT_OK
        assert "3/3 interactions passed" in capsys.readouterr().out

    def test_failing_run_exits_one(self, settings, provider_server, tmp_path, capsys):
        """Test that a failing verification exits 1."""
        contract = Contract(
            consumer_name=CONSUMER,
            provider_name=PROVIDER,
            interactions=[make_interaction("missing endpoint", status=200, path="/Nowhere")],
        )
        path = storage.save(contract, tmp_path)
        code = cli.main(_verify_args(provider_server, "--pact-file", str(path)), settings=settings)
        assert code == cli.EXIT_FAILED
        assert "missing endpoint ... FAILED" in capsys.readouterr().out

    def test_missing_contract_exits_two(self, settings, provider_server, tmp_path, capsys):
        """Test that a missing pact file exits 2."""
        code = cli.main(
            _verify_args(provider_server, "--pact-file", str(tmp_path / "nope.json")),
            settings=settings,
        )
        assert code == cli.EXIT_LOAD_ERROR
        assert "not found" in capsys.readouterr().err

    def test_locates_contract_by_consumer(
        self, settings, provider_server, pact_file, tmp_path, monkeypatch
    ):
        """Test that --consumer finds the pact file from the working directory."""
        monkeypatch.chdir(tmp_path)
        code = cli.main(_verify_args(provider_server, "--consumer", CONSUMER), settings=settings)
        assert code == cli.EXIT_OK

    def test_no_source_exits_two(self, settings, provider_server):
        """Test that verify without a pact source exits 2."""
        assert cli.main(_verify_args(provider_server), settings=settings) == cli.EXIT_LOAD_ERROR

    def test_only_option(self, settings, provider_server, pact_file, capsys):
        """Test that --only restricts the run to the named interaction."""
        args = _verify_args(
            provider_server,
            "--pact-file", str(pact_file),
            "--only", "A POST request to BulkUsers with invalid token",
        )
        assert cli.main(args, settings=settings) == cli.EXIT_OK
        assert "1/1 interactions passed" in capsys.readouterr().out

    def test_only_unknown_description_exits_two(self, settings, provider_server, pact_file, capsys):
        """Test that --only naming an absent interaction exits 2 without verifying."""
        args = _verify_args(provider_server, "--pact-file", str(pact_file), "--only", "typo")
        assert cli.main(args, settings=settings) == cli.EXIT_LOAD_ERROR
        captured = capsys.readouterr()
        assert "Unknown interaction descriptions: typo" in captured.err
        assert "interactions passed" not in captured.out

    def test_non_utf8_contract_exits_two(self, settings, provider_server, tmp_path, capsys):
        """Test that a pact file that is not UTF-8 exits 2."""
        path = tmp_path / "latin1.json"
        path.write_bytes(b'{"consumer": {"name": "\xff"}}')
        code = cli.main(_verify_args(provider_server, "--pact-file", str(path)), settings=settings)
        assert code == cli.EXIT_LOAD_ERROR
        assert "Invalid UTF-8" in capsys.readouterr().err


class TestShowCommand:
    """Tests for `pactkit show`."""

    def test_show_summary(self, settings, pact_file, capsys):
        """Test that show prints participants, states and exchanges."""
        assert cli.main(["show", str(pact_file)], settings=settings) == cli.EXIT_OK
        out = capsys.readouterr().out
        assert "SF-Consumer -> VAIS-Producer" in out
        assert "given 'Windows user does not exist in domain'" in out
        assert "POST /BulkUsers -> 400" in out

    def test_show_malformed(self, settings, tmp_path):
        """Test that show exits 2 for a malformed contract."""
        path = tmp_path / "bad.json"
        path.write_text("[]")
        assert cli.main(["show", str(path)], settings=settings) == cli.EXIT_LOAD_ERROR


def test_subcommand_required():
    """Test that the parser demands a subcommand."""
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args([])
