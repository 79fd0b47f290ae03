"""
Tests for scripts/validate_definitions.py.

The script is loaded from its file since scripts/ is not a package.
"""

import importlib.util
from pathlib import Path

import pytest
import yaml

SCRIPT = Path(__file__).resolve().parents[2] / "scripts" / "validate_definitions.py"


@pytest.fixture(scope="module")
def lint():
    spec = importlib.util.spec_from_file_location("validate_definitions", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def payload(transitions: list[dict]) -> dict:
    return {
        "workflowName": "Leave Request",
        "steps": [
            {
                "stepName": "Request",
                "order": 1,
                "assigneeLogic": {"assigneeType": "SUBMITTER"},
                "actions": [{"name": "submit"}],
                "transitions": transitions,
            },
            {
                "stepName": "Review",
                "order": 2,
                "assigneeLogic": {"assigneeType": "SPECIFIC_ROLE", "specificRoleId": "MANAGER"},
                "actions": [{"name": "approve"}],
            },
        ],
    }


def write(path: Path, data) -> Path:
    path.write_text(yaml.safe_dump(data))
    return path


class TestLintSeeds:
    def test_seeded_definitions_pass(self, lint, capsys):
        assert lint.main([]) == 0

        out = capsys.readouterr().out
        assert "4 file(s) checked, 0 with errors." in out
        assert "FAILED" not in out


class TestLintFiles:
    def test_invalid_definition_fails(self, lint, tmp_path, capsys):
        path = write(
            tmp_path / "bad.yaml",
            payload([{"toStepName": "Nowhere", "actionName": "submit"}]),
        )

        assert lint.main([str(path)]) == 1

        out = capsys.readouterr().out
        assert f"{path}: FAILED" in out
        assert "  ERROR: Step 'Request' transition #1 targets undeclared step 'Nowhere'" in out
        assert "1 file(s) checked, 1 with errors." in out

    def test_unreadable_yaml(self, lint, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("steps: [unclosed\n")

        errors, warnings = lint.lint_file(path)

        assert len(errors) == 1
        assert errors[0].startswith("cannot read file:")
        assert warnings == []

    def test_shadowed_transition_is_a_warning(self, lint, tmp_path, capsys):
        path = write(
            tmp_path / "shadowed.yaml",
            payload([
                {"toStepName": "Review", "actionName": "submit"},
                {"toStepName": "Review", "actionName": "submit"},
            ]),
        )

        assert lint.main([str(path)]) == 0

        out = capsys.readouterr().out
        assert f"{path}: OK" in out
        assert "  WARNING: step 'Request': transition #2" in out

    def test_shadowed_transition_fails_in_strict_mode(self, lint, tmp_path, capsys):
        path = write(
            tmp_path / "shadowed.yaml",
            payload([
                {"toStepName": "Review", "actionName": "submit"},
                {"toStepName": "Review", "actionName": "submit"},
            ]),
        )

        assert lint.main([str(path), "--strict"]) == 1

        out = capsys.readouterr().out
        assert "  ERROR: step 'Request': transition #2" in out
        assert "WARNING" not in out

    def test_directory_is_expanded(self, lint, tmp_path, capsys):
        write(tmp_path / "a.yaml", payload([{"toStepName": "Review", "actionName": "submit"}]))
        write(tmp_path / "b.yml", payload([{"toStepName": "Review", "actionName": "submit"}]))
        (tmp_path / "notes.txt").write_text("not a definition")

        assert lint.main([str(tmp_path)]) == 0

        assert "2 file(s) checked, 0 with errors." in capsys.readouterr().out

    def test_empty_directory(self, lint, tmp_path, capsys):
        assert lint.main([str(tmp_path)]) == 1
        assert "No definition files found." in capsys.readouterr().err
