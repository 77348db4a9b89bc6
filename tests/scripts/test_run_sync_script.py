"""
Tests for scripts/run_sync.py — one full pass over a JSON snapshot.
"""

import json

SNAPSHOT = {
    "expenses": [
        {"id": "EXP_1", "amount": 500, "category": "rent", "status": "paid", "date": "2026-02-01"},
    ],
    "cash_flow_transactions": [
        {"id": "CF_OLD", "date": "2026-01-05", "type": "expense", "category": "other", "amount": 70,
         "referenceId": "EXP_GONE", "referenceType": "expense"},
    ],
    "products": [{"id": "P1", "name": "Mug", "stock": 0}],
}


def _write(tmp_path, data):
    path = tmp_path / "snapshot.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestRunSyncScript:
    def test_sync_audit_and_alerts(self, tmp_path, capsys):
        from scripts.run_sync import main

        assert main([str(_write(tmp_path, SNAPSHOT))]) == 0
        output = json.loads(capsys.readouterr().out)
        assert output["sync"]["summary"].startswith("1 posted, 0 skipped")
        assert "repair" not in output
        assert len(output["audit"]["issues"]) == 1
        assert [a["id"] for a in output["alerts"]] == ["out_of_stock:P1"]

    def test_repair_and_write(self, tmp_path, capsys):
        from scripts.run_sync import main

        out = tmp_path / "after.json"
        assert main([str(_write(tmp_path, SNAPSHOT)), "--repair", "--parallel", "--write", str(out)]) == 0
        output = json.loads(capsys.readouterr().out)
        assert output["repair"]["fixed"] == 1
        assert output["audit"]["issues"] == []
        written = json.loads(out.read_text(encoding="utf-8"))
        assert [row["referenceId"] for row in written["cash_flow_transactions"]] == ["EXP_1"]

    def test_snapshot_must_be_an_object(self, tmp_path, capsys):
        from scripts.run_sync import main

        assert main([str(_write(tmp_path, ["not", "a", "store"]))]) == 2
        assert "JSON object" in capsys.readouterr().err
