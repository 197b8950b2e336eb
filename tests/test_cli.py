"""Tests for the ccdafold command line."""

import json

import pytest

from ccdafold.cli import main

PROBLEM = """
<act classCode="ACT" moodCode="EVN">
  <id root="ec8a6ff8-ed4b-4f7e-82c3-e98e58b45de7"/>
  <entryRelationship typeCode="SUBJ">
    <observation classCode="OBS" moodCode="EVN">
      <id root="ab1791b0-5c71-11db-b0de-0800200c9a66" extension="P1"/>
      <code code="55607006" codeSystem="2.16.840.1.113883.6.96"/>
      <value xsi:type="CD" {value}codeSystem="2.16.840.1.113883.6.96"/>
    </observation>
  </entryRelationship>
</act>
"""


@pytest.fixture
def write_document(tmp_path, document_xml):
    def _write(value='code="233604007" ', **kwargs):
        path = tmp_path / "document.xml"
        path.write_text(document_xml({"11450-4": [PROBLEM.format(value=value)]}, **kwargs))
        return str(path)

    return _write


@pytest.fixture
def missing_config(tmp_path):
    return str(tmp_path / "missing.toml")


class TestConvert:
    def test_writes_bundle(self, tmp_path, write_document, missing_config, capsys):
        out = tmp_path / "bundle.json"
        main(["convert", write_document(), "--config", missing_config, "-o", str(out)])
        data = json.loads(out.read_text())
        assert data["resourceType"] == "Bundle"
        assert [e["resource"]["resourceType"] for e in data["entry"]] == [
            "Organization", "Patient", "Condition", "Practitioner", "PractitionerRole",
        ]
        assert "Wrote 5 records" in capsys.readouterr().err

    def test_stdout(self, write_document, missing_config, capsys):
        main(["convert", write_document(), "--config", missing_config])
        data = json.loads(capsys.readouterr().out)
        assert len(data["entry"]) == 5

    def test_patient_only(self, write_document, missing_config, capsys):
        main(["convert", write_document(), "--config", missing_config, "--patient-only"])
        data = json.loads(capsys.readouterr().out)
        assert [e["resource"]["resourceType"] for e in data["entry"]] == ["Patient"]

    def test_collected_errors_exit_1(self, tmp_path, write_document, missing_config, capsys):
        out = tmp_path / "bundle.json"
        with pytest.raises(SystemExit) as exc:
            main(["convert", write_document(value='nullFlavor="BOGUS" '), "--config", missing_config, "-o", str(out)])
        assert exc.value.code == 1
        # the partial bundle is still written
        assert len(json.loads(out.read_text())["entry"]) == 4
        assert "1 conversion error(s)" in capsys.readouterr().err

    def test_fatal_error_exit_2(self, write_document, missing_config, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["convert", write_document(record_target=""), "--config", missing_config])
        assert exc.value.code == 2
        assert "Error:" in capsys.readouterr().err

    def test_disabled_in_config(self, tmp_path, write_document, capsys):
        config = tmp_path / "ccdafold.toml"
        config.write_text('[conversion]\ndisabled = ["Condition.problem-list-item"]\n\n[output]\nindent = 0\n')
        main(["convert", write_document(), "--config", str(config)])
        data = json.loads(capsys.readouterr().out)
        assert len(data["entry"]) == 4


class TestSummary:
    def test_counts(self, write_document, missing_config, capsys):
        main(["summary", write_document(), "--config", missing_config])
        out = capsys.readouterr().out
        assert "Summary of" in out
        assert "Condition" in out
        assert "Total" in out

    def test_errors_listed(self, write_document, missing_config, capsys):
        main(["summary", write_document(value='nullFlavor="BOGUS" '), "--config", missing_config])
        assert "UnrecognizedValueError" in capsys.readouterr().out


class TestInitConfig:
    def test_writes_file(self, tmp_path, capsys):
        path = tmp_path / "ccdafold.toml"
        main(["init-config", "--output", str(path)])
        assert "[conversion]" in path.read_text()
        assert "Config generated" in capsys.readouterr().out

    def test_no_command(self):
        with pytest.raises(SystemExit) as exc:
            main([])
        assert exc.value.code == 1
