"""Tests for the panel schedule generator and its command line."""

import random
import sys

import pytest
import yaml

import generate_panel_schedule
from generate_panel_schedule import complete_records
from generate_panel_schedule import generate_panel_schedule as generate
from load_schedule import load_circuit_records, save_circuit_records


@pytest.fixture
def records():
    return [
        {"circuit_name": "LP-1", "connected_load_w": 2000},
        {"circuit_name": "LP-2", "connected_load_w": 15000, "power_factor": 1.0,
         "load_type": "Receptacles (General)", "circuit_length": 15},
        {"circuit_name": "LP-3", "connected_load_w": 400, "load_type": "Lighting (Residential)"},
        {"circuit_name": "M-1", "voltage": 400, "phases": 3, "power_factor": 0.85,
         "connected_load_w": 7500, "load_type": "Motor", "circuit_length": 30},
    ]


class TestGeneratePanelSchedule:
    def test_output_sections(self, records):
        schedule = generate(records, rng=random.Random(1))
        assert set(schedule) == {"panel_summary", "schedule", "layout", "circuits", "warnings"}
        assert len(schedule["schedule"]) == 4
        assert schedule["panel_summary"]["colors_generated"] == 4
        assert schedule["warnings"] == []

    def test_defaults_applied(self, records):
        circuits = {c["circuit_name"]: c for c in generate(records)["circuits"]}
        assert circuits["LP-1"]["voltage"] == 230.0
        assert circuits["LP-1"]["demand_load_va"] == 2222.22
        assert circuits["LP-1"]["breaker_at"] == 16

    def test_invalid_record_rejected(self, records):
        records[0]["power_factor"] = 1.5
        with pytest.raises(ValueError, match="power factor"):
            generate(records)

    def test_duplicate_names_rejected(self, records):
        records.append({"circuit_name": "LP-1", "connected_load_w": 100})
        with pytest.raises(ValueError, match="Duplicate circuit name: LP-1"):
            generate(records)

    def test_saved_slots(self, records):
        records[0]["schedule_slot"] = 9
        placed = generate(records)["layout"]
        assert [e["slots"] for e in placed["entries"] if e["circuit_name"] == "LP-1"] == [[9]]

        ignored = generate(records, use_saved_slots=False)["layout"]
        assert [e["slots"] for e in ignored["entries"] if e["circuit_name"] == "LP-1"] == [[1]]

    def test_swaps_applied(self, records):
        layout = generate(records, swaps=[(1, 3)])["layout"]
        slots = {e["circuit_name"]: e["slots"] for e in layout["entries"]}
        assert slots["LP-1"] == [3]
        assert slots["LP-3"] == [1]

    def test_balance(self, records):
        schedule = generate(records, balance=True)
        assert "balance" in schedule["layout"]
        before = schedule["layout"]["balance"]["gap_before_va"]
        after = schedule["layout"]["balance"]["gap_after_va"]
        assert after <= before

    def test_advisories(self):
        schedule = generate([
            {"circuit_name": "M-9", "voltage": 400, "phases": 3, "power_factor": 0.85,
             "connected_load_w": 150000, "load_type": "Motor"},
            {"circuit_name": "LP-9", "connected_load_w": 2000, "circuit_length": 100},
        ])
        warnings = " ".join(schedule["warnings"])
        assert "M-9" in warnings and "under-protected" in warnings
        assert "no conductor covers" in warnings
        assert "LP-9: voltage drop" in warnings

    def test_unplaced_warning(self, records):
        schedule = generate(records, max_slots=4)
        assert schedule["panel_summary"]["unplaced"] == ["M-1"]
        assert any("M-1: could not be placed" in w for w in schedule["warnings"])


class TestCompleteRecords:
    def test_unnamed_circuits_numbered(self):
        completed = complete_records([
            {"circuit_name": "LP-4", "connected_load_w": 100},
            {"connected_load_w": 200},
            {"circuit_name": "", "connected_load_w": 300},
        ])
        assert [r["circuit_name"] for r in completed] == ["LP-4", "LP-5", "LP-6"]

    def test_totals_from_listed_loads(self):
        loads = [
            {"watts": 100, "load_type": "Lighting (Residential)"},
            {"watts": 1500, "load_type": "Receptacles (General)"},
            {"watts": 60, "load_type": "Lighting (Residential)"},
        ]
        (record,) = complete_records([{"circuit_name": "LP-1", "loads": loads}])
        assert record["connected_load_w"] == 1660
        assert record["load_type"] == "Lighting (Residential)"

    def test_explicit_values_win(self):
        (record,) = complete_records([{
            "circuit_name": "LP-1", "connected_load_w": 500, "load_type": "Motor",
            "loads": [{"watts": 100, "load_type": "General"}],
        }])
        assert record["connected_load_w"] == 500
        assert record["load_type"] == "Motor"

    def test_records_not_modified(self):
        records = [{"connected_load_w": 200}]
        complete_records(records)
        assert records == [{"connected_load_w": 200}]

    def test_generator_names_unnamed_circuits(self):
        schedule = generate([{"connected_load_w": 2000}, {"circuit_name": "LP-1", "connected_load_w": 900}])
        assert sorted(c["circuit_name"] for c in schedule["circuits"]) == ["LP-1", "LP-2"]


class TestCommandLine:
    def run(self, monkeypatch, *argv):
        monkeypatch.setattr(sys, "argv", ["generate_panel_schedule.py", *argv])
        generate_panel_schedule.main()

    def test_writes_schedule(self, tmp_path, monkeypatch, capsys, records):
        store = tmp_path / "circuits.yaml"
        output = tmp_path / "out" / "schedule.yaml"
        save_circuit_records(store, records)

        self.run(monkeypatch, "--circuits", str(store), "--output", str(output),
                 "--swap", "1", "3", "--balance", "--seed", "7")

        with open(output) as f:
            schedule = yaml.safe_load(f)
        assert len(schedule["schedule"]) == 4
        assert schedule["layout"]["balance"]["stop_reason"]
        assert "Generated panel schedule" in capsys.readouterr().out

    def test_save_slots(self, tmp_path, monkeypatch, records):
        store = tmp_path / "circuits.yaml"
        save_circuit_records(store, records)

        self.run(monkeypatch, "-c", str(store), "-o", str(tmp_path / "schedule.yaml"),
                 "--save-slots")

        saved = {r["circuit_name"]: r for r in load_circuit_records(store)}
        assert saved["LP-1"]["schedule_slot"] == 1
        assert saved["LP-1"]["breaker_at"] == 16
        assert saved["LP-1"]["schedule_text_color"].startswith("#")

    def test_save_slots_keeps_stored_attributes(self, tmp_path, monkeypatch):
        store = tmp_path / "circuits.yaml"
        save_circuit_records(store, [{
            "circuit_name": "LP-1",
            "connected_load_w": 2000,
            "description": "Kitchen receptacles",
            "entity_id": 42,
        }])

        self.run(monkeypatch, "-c", str(store), "-o", str(tmp_path / "schedule.yaml"),
                 "--save-slots")

        (saved,) = load_circuit_records(store)
        assert saved["description"] == "Kitchen receptacles"
        assert saved["entity_id"] == 42
        assert saved["schedule_slot"] == 1
        assert saved["breaker_at"] == 16
        assert "under_protected" not in saved

    def test_missing_store(self, tmp_path, monkeypatch, capsys):
        with pytest.raises(SystemExit) as exc:
            self.run(monkeypatch, "-c", str(tmp_path / "nope.yaml"), "-o", str(tmp_path / "x.yaml"))
        assert exc.value.code == 1
        assert "Error: Circuit store not found" in capsys.readouterr().out

    def test_odd_panel_size(self, tmp_path, monkeypatch, capsys, records):
        store = tmp_path / "circuits.yaml"
        save_circuit_records(store, records)
        with pytest.raises(SystemExit) as exc:
            self.run(monkeypatch, "-c", str(store), "-o", str(tmp_path / "x.yaml"), "-n", "29")
        assert exc.value.code == 1
        assert "positive even number" in capsys.readouterr().out

    def test_invalid_circuits(self, tmp_path, monkeypatch, capsys):
        store = tmp_path / "circuits.yaml"
        save_circuit_records(store, [{"circuit_name": "LP-1", "phases": 2}])
        with pytest.raises(SystemExit) as exc:
            self.run(monkeypatch, "-c", str(store), "-o", str(tmp_path / "x.yaml"))
        assert exc.value.code == 1
        assert "phases must be 1 or 3" in capsys.readouterr().out

    def test_store_without_circuit_list(self, tmp_path, monkeypatch, capsys):
        store = tmp_path / "circuits.yaml"
        store.write_text("just a string\n")
        with pytest.raises(SystemExit) as exc:
            self.run(monkeypatch, "-c", str(store), "-o", str(tmp_path / "x.yaml"))
        assert exc.value.code == 1
        assert "Error: Circuit store must hold a 'circuits' list" in capsys.readouterr().out
