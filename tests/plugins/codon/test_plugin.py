"""Tests for the codon plugin, plugin registry and command-line interface."""

from pathlib import Path

import pytest
from typer.testing import CliRunner

from codonbayes.cli import app
from codonbayes.plugins import PluginRegistry, plugins
from codonbayes.plugins.codon import CodonPlugin, LogLinearCodonModel, load_gene_data


class TestCodonPlugin:
    def test_metadata(self):
        plugin = CodonPlugin()
        assert plugin.name == "codon"
        assert plugin.version == "0.1.0"
        assert plugin.models == {"loglinear": LogLinearCodonModel}
        assert plugin.loaders["gene_data"] is load_gene_data
        assert set(plugin.priors) == {"phi", "csp"}

    def test_registry_register_and_load(self):
        registry = PluginRegistry()
        registry.register(CodonPlugin())
        assert "codon" in registry.list()
        assert isinstance(registry.load("codon"), CodonPlugin)

    def test_model_lookup(self):
        registry = PluginRegistry()
        registry.register(CodonPlugin())
        assert registry.model("loglinear") is LogLinearCodonModel
        with pytest.raises(KeyError, match="No plugin provides"):
            registry.model("mg94")

    def test_load_nonexistent(self):
        with pytest.raises(KeyError, match="not found"):
            plugins.load("nonexistent_plugin")


@pytest.fixture
def fasta(tmp_path: Path) -> Path:
    path = tmp_path / "genes.fasta"
    path.write_text(
        ">g1\nATGGCTGCAGCCAAAAAGCTGTTATTGCGT\n"
        ">g2\nATGGCAGCAGCAAAGAAGCTTCTCCTACGA\n"
        ">g3\nATGGCGGCTGCCAAAAAACTGCTGTTAAGA\n",
        encoding="utf-8",
    )
    return path


class TestCli:
    def test_version(self):
        result = CliRunner().invoke(app, ["version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_run(self, fasta: Path, tmp_path: Path):
        expression = tmp_path / "expr.csv"
        expression.write_text("gene,phi\ng1,1.2\ng3,0.4\n", encoding="utf-8")
        result = CliRunner().invoke(
            app,
            [
                "run", str(fasta),
                "--expression", str(expression),
                "--mixtures", "2",
                "--samples", "20",
                "--adaptive-width", "5",
                "--seed", "1",
                "--burn-in", "5",
            ],
        )
        assert result.exit_code == 0, result.output
        assert "Acceptance Rates" in result.output
        assert "s_epsilon" in result.output

    def test_run_shared_sphi(self, fasta: Path):
        result = CliRunner().invoke(
            app,
            ["run", str(fasta), "--mixtures", "3", "--shared-sphi", "--samples", "10", "--seed", "2"],
        )
        assert result.exit_code == 0, result.output
        assert "Gene-sets" in result.output

    def test_run_configuration_error(self, fasta: Path):
        result = CliRunner().invoke(app, ["run", str(fasta), "--sphi", "0"])
        assert result.exit_code == 1
        assert "Error" in result.output

    def test_run_burn_in_too_large(self, fasta: Path):
        result = CliRunner().invoke(app, ["run", str(fasta), "--samples", "5", "--burn-in", "5"])
        assert result.exit_code == 1
