"""
test_cli.py

End-to-end tests of the banking-trace command line.
"""

import base64
import json

import pytest
import requests

from banking_trace.core.accounts import pubkey_to_bytes
from banking_trace.core.config import TraceToolConfig
from banking_trace.core.lookup_tables import LOOKUP_TABLE_META_SIZE
from banking_trace.trace_cli import build_parser, main

from conftest import batch, boundary, key, make_transaction, packet


def wire(transaction, **meta):
    return packet(transaction.serialize(), **meta)


@pytest.fixture
def scenario_trace(write_trace):
    t1 = make_transaction(writable=[key(1)], price=30)
    t2 = make_transaction(writable=[key(1)], readonly=[key(2)], price=20)
    t3 = make_transaction(readonly=[key(2)], price=10)
    return write_trace([
        boundary(1_000, 10),
        batch(2_000, wire(t1), wire(t2)), batch(3_000, wire(t3)),
        boundary(4_000, 11),
        boundary(5_000, 13),
    ])


class TestCommands:

    def test_slot_ranges(self, scenario_trace, capsys):
        assert main(["--path", str(scenario_trace), "slot-ranges"]) == 0
        assert capsys.readouterr().out.splitlines() == ["10-11", "13-13"]

    def test_time_range(self, scenario_trace, capsys):
        assert main(["--path", str(scenario_trace), "time-range"]) == 0
        assert capsys.readouterr().out.strip() == (
            "1970-01-01T00:00:00.000001000Z - 1970-01-01T00:00:00.000005000Z")

    def test_multiple_paths(self, scenario_trace, write_trace, capsys):
        later = write_trace([boundary(6_000, 14)])
        assert main(["--path", str(scenario_trace), "--path", str(later), "slot-ranges"]) == 0
        assert capsys.readouterr().out.splitlines() == ["10-11", "13-14"]

    def test_graph(self, scenario_trace, tmp_path, capsys):
        output = tmp_path / "graph.json"
        store = tmp_path / "alt.json"
        assert main(["--path", str(scenario_trace), "--alt-store", str(store),
                     "graph", str(output), "--slot", "11"]) == 0

        graph = json.loads(output.read_text())["graph"]
        assert len(graph["nodes"]) == 3
        assert len(graph["edges"]) == 1
        assert store.exists()
        assert "3 transactions in 2 layers" in capsys.readouterr().out

    def test_graph_by_time(self, scenario_trace, tmp_path):
        output = tmp_path / "graph.json"
        assert main(["--path", str(scenario_trace), "--alt-store", str(tmp_path / "alt.json"),
                     "graph", str(output),
                     "--start-timestamp", "1970-01-01T00:00:00.000002Z",
                     "--end-timestamp", "1970-01-01T00:00:00.000002Z"]) == 0
        assert len(json.loads(output.read_text())["graph"]["nodes"]) == 2

    def test_dump_without_store(self, scenario_trace, tmp_path, capsys):
        store = tmp_path / "alt.json"
        assert main(["--path", str(scenario_trace), "--alt-store", str(store),
                     "dump", "--skip-alt-resolution", "--account", key(2)]) == 0
        assert not store.exists()

        lines = capsys.readouterr().out.splitlines()
        assert sum("priority=" in line for line in lines) == 2
        assert sum(line.endswith("- slot 11") for line in lines) == 1

    def test_update_alt_store(self, write_trace, tmp_path, monkeypatch, capsys):
        tx = make_transaction(lookups=[(key(9), [0], [])])
        trace = write_trace([batch(1, wire(tx)), boundary(2, 50)])

        data = bytes(LOOKUP_TABLE_META_SIZE) + pubkey_to_bytes(key(1))
        reply = {"result": {"value": [{"data": [base64.b64encode(data).decode("ascii"), "base64"]}]}}

        class Response:
            def raise_for_status(self):
                pass

            def json(self):
                return reply

        monkeypatch.setattr(requests, "post", lambda *a, **kw: Response())

        store = tmp_path / "alt.json"
        assert main(["--path", str(trace), "--alt-store", str(store), "update-alt-store", "50", "50"]) == 0
        assert json.loads(store.read_text())["tables"] == {key(9): [key(1)]}
        assert "Fetching 1 ALTs for slot 50" in capsys.readouterr().out


class TestErrors:

    def test_missing_trace_file(self, tmp_path, capsys):
        assert main(["--path", str(tmp_path / "absent.bin"), "time-range"]) == 1
        assert capsys.readouterr().err.startswith("error: ")

    def test_not_a_trace_file(self, tmp_path, capsys):
        path = tmp_path / "junk.bin"
        path.write_bytes(b"definitely not a trace")
        assert main(["--path", str(path), "slot-ranges"]) == 1
        assert "not a banking trace file" in capsys.readouterr().err

    def test_corrupt_store(self, scenario_trace, tmp_path, capsys):
        store = tmp_path / "alt.json"
        store.write_text("{")
        assert main(["--path", str(scenario_trace), "--alt-store", str(store), "account-usage", "1", "2"]) == 1
        assert "error: " in capsys.readouterr().err

    def test_graph_needs_a_unit(self, scenario_trace, tmp_path):
        with pytest.raises(SystemExit) as excinfo:
            main(["--path", str(scenario_trace), "--alt-store", str(tmp_path / "alt.json"),
                  "graph", str(tmp_path / "g.json")])
        assert excinfo.value.code == 2

    def test_bad_timestamp(self, scenario_trace):
        with pytest.raises(SystemExit):
            main(["--path", str(scenario_trace), "duplicate-check", "--start-timestamp", "noon"])

    def test_path_required(self):
        with pytest.raises(SystemExit):
            main(["slot-ranges"])


class TestConfig:

    def test_from_args(self):
        args = build_parser().parse_args([
            "--path", "t.bin", "--alt-store", "store.json", "--rpc-url", "http://rpc.test",
            "--rpc-timeout", "3", "--log-level", "DEBUG", "graph", "g.json", "--slot", "1",
            "--verify-signatures",
        ])
        config = TraceToolConfig.from_args(args)
        assert str(config.alt_store_path) == "store.json"
        assert (config.rpc_url, config.rpc_timeout, config.log_level) == ("http://rpc.test", 3.0, "DEBUG")
        assert config.verify_signatures

    def test_defaults(self):
        config = TraceToolConfig.from_args(build_parser().parse_args(["--path", "t.bin", "time-range"]))
        assert config == TraceToolConfig()
