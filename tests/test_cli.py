# tests/test_cli.py
import json

import pytest

from studydesign.cli import main


def test_sequence_json_output(capsys):
    rc = main(["sequence", "-n", "8", "--method", "block", "--ratio", "1:1", "--block-size", "4",
               "--seed", "42", "--format", "json"])
    assert rc == 0
    out = json.loads(capsys.readouterr().out)
    assert out["method"] == "block"
    assert out["seed"] == 42
    assert out["fallback"] is None
    arms = [a["armIndex"] for a in out["assignments"]]
    assert [a["participantId"] for a in out["assignments"]] == list(range(1, 9))
    assert sorted(arms[:4]) == [0, 0, 1, 1]
    assert sorted(arms[4:]) == [0, 0, 1, 1]


def test_sequence_reports_fallback(capsys):
    rc = main(["sequence", "-n", "5", "--method", "cluster", "--seed", "3", "--format", "json"])
    assert rc == 0
    out = json.loads(capsys.readouterr().out)
    assert out["requested_method"] == "cluster"
    assert out["method"] == "simple"
    assert out["fallback"]["requested"] == "cluster"


def test_sequence_strict_fails(capsys):
    rc = main(["sequence", "-n", "5", "--method", "minimization", "--seed", "3", "--strict"])
    assert rc == 2
    assert "minimization" in capsys.readouterr().err


def test_sequence_from_config_file(tmp_path, capsys):
    path = tmp_path / "design.json"
    path.write_text(json.dumps({"randomization": {"method": "block", "ratio": [2, 1], "blockSize": [6], "seed": 9}}))
    rc = main(["sequence", "-n", "6", "--config", str(path), "--format", "csv"])
    assert rc == 0
    lines = capsys.readouterr().out.strip().splitlines()
    assert lines[0] == "participant_id,arm_index,block"
    arms = [int(line.split(",")[1]) for line in lines[1:]]
    assert sorted(arms) == [0, 0, 0, 0, 1, 1]


def test_sequence_table_output(capsys):
    rc = main(["sequence", "-n", "4", "--method", "simple", "--seed", "1"])
    assert rc == 0
    out = capsys.readouterr().out
    assert "Method: simple" in out
    assert "expected_share" in out


def test_sequence_invalid_ratio(capsys):
    rc = main(["sequence", "-n", "4", "--ratio", "1:0"])
    assert rc == 2
    assert "ratio" in capsys.readouterr().err


def test_sample_size_text(capsys):
    rc = main(["sample-size", "--effect-size", "0.5", "--design", "rct"])
    assert rc == 0
    out = capsys.readouterr().out
    assert "Sample size: 128" in out


def test_sample_size_json_factorial(capsys):
    rc = main(["sample-size", "--effect-size", "0.5", "--design", "factorial", "--factors", "3", "--json"])
    assert rc == 0
    out = json.loads(capsys.readouterr().out)
    assert out["n_total"] == 256
    assert out["design_type"] == "factorial"


def test_sample_size_invalid_dropout(capsys):
    rc = main(["sample-size", "--effect-size", "0.5", "--dropout-rate", "1.2"])
    assert rc == 2
    assert "dropout_rate" in capsys.readouterr().err


def test_sequence_config_file_missing(tmp_path, capsys):
    rc = main(["sequence", "-n", "4", "--config", str(tmp_path / "nope.json")])
    assert rc == 2
    assert "Cannot read config file" in capsys.readouterr().err


def test_sequence_config_file_not_json(tmp_path, capsys):
    path = tmp_path / "bad.json"
    path.write_text("{not json")
    rc = main(["sequence", "-n", "4", "--config", str(path)])
    assert rc == 2
    assert "not valid JSON" in capsys.readouterr().err


@pytest.mark.parametrize("payload", [[1, 2], {"randomization": None}, "block"])
def test_sequence_config_file_not_an_object(tmp_path, capsys, payload):
    path = tmp_path / "design.json"
    path.write_text(json.dumps(payload))
    rc = main(["sequence", "-n", "4", "--config", str(path)])
    assert rc == 2
    assert "JSON object" in capsys.readouterr().err
