import textwrap

import pytest
from typer.testing import CliRunner

from chat_script_engine.cli import app
from chat_script_engine.observability.logging import setup_logging

runner = CliRunner()


class TestCLI:
    @pytest.fixture(autouse=True)
    def restore_logging(self):
        yield
        setup_logging("warning")

    def test_components_list(self):
        result = runner.invoke(app, ["components", "list"])
        assert result.exit_code == 0
        assert 'candidate-selector: {"multiple": true}' in result.output
        assert "source-table" in result.output

    def test_scripts_list(self):
        result = runner.invoke(app, ["scripts", "list"])
        assert result.exit_code == 0
        assert "[create-candidate] create-candidate:" in result.output
        assert "(4 steps)" in result.output
        assert "1. select-method" in result.output
        assert "[matching] matching:" in result.output

    def test_scripts_validate(self, tmp_path):
        valid = tmp_path / "valid.yaml"
        valid.write_text(
            textwrap.dedent(
                """
                id: notes
                feature: notes
                steps:
                  - id: write
                    message: Write a note
                    on_complete: store_note
                """
            )
        )
        result = runner.invoke(app, ["scripts", "validate", str(valid)])
        assert result.exit_code == 0
        assert "is valid: notes for feature notes (1 steps)" in result.output

        invalid = tmp_path / "invalid.yaml"
        invalid.write_text("id: notes\nfeature: notes\nsteps: []\n")
        result = runner.invoke(app, ["scripts", "validate", str(invalid)])
        assert result.exit_code == 1
        assert "Validation Error" in result.output

        result = runner.invoke(
            app, ["scripts", "validate", str(tmp_path / "missing.yaml")]
        )
        assert result.exit_code == 1
        assert "File not found" in result.output

    def test_chat_general(self):
        result = runner.invoke(app, ["chat", "general"], input="hi\n/quit\n")
        assert result.exit_code == 0
        assert "assistant> Hello! How can I help you today?" in result.output
        assert "- create-job: add a job posting" in result.output

    def test_chat_script_navigation(self):
        result = runner.invoke(
            app,
            ["chat", "create-candidate"],
            input=(
                "/progress\n/back\nName: Jane Doe\n/progress\n/back\n/quit\n"
            ),
        )
        assert result.exit_code == 0
        assert "[component input-method-selector]" in result.output
        assert "step 1 of 4" in result.output
        assert "You cannot go back from this step." in result.output
        assert "Here is what I found." in result.output
        assert "step 3 of 4" in result.output
        assert "Please type the candidate's information below" in result.output

    def test_chat_component_command(self):
        result = runner.invoke(
            app,
            ["chat", "create-job"],
            input='/component {"jobText": "title: Data Engineer"}\n/quit\n',
        )
        assert result.exit_code == 0
        assert "Invalid JSON" not in result.output
        assert "No component to send data to." not in result.output

    def test_chat_unknown_feature(self):
        result = runner.invoke(app, ["chat", "payroll"])
        assert result.exit_code == 1
        assert "Available: create-candidate" in result.output

    def test_chat_with_script_file(self, tmp_path):
        path = tmp_path / "notes.yaml"
        path.write_text(
            "id: notes\nfeature: notes\nsteps:\n"
            "  - id: write\n    message: Write a note\n"
        )
        result = runner.invoke(
            app, ["chat", "notes", "--script", str(path)], input="hello\n/quit\n"
        )
        assert result.exit_code == 0
        assert "assistant> Write a note" in result.output
        assert "assistant> All done!" in result.output

    def test_scripts_validate_warns_on_unregistered_component(self, tmp_path):
        path = tmp_path / "chart.yaml"
        path.write_text(
            "id: chart\nfeature: chart\nsteps:\n"
            "  - id: draw\n    message: Pick a chart\n"
            "    component: {type: bar-chart}\n"
        )
        result = runner.invoke(app, ["scripts", "validate", str(path)])
        assert result.exit_code == 0
        assert "Warning: step draw: Component type not registered: bar-chart" in (
            result.output
        )
        assert "is valid: chart for feature chart" in result.output
