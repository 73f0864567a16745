"""Command-line interface."""

import logging
from collections import defaultdict
from pathlib import Path
from typing import Optional

import numpy as np
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

app = typer.Typer(help="codonbayes: Bayesian codon-usage parameter estimation")
console = Console()


@app.command()
def version():
    """Show codonbayes version."""
    from codonbayes import __version__
    console.print(f"codonbayes version {__version__}")


@app.command()
def plugins():
    """List available plugins."""
    from codonbayes.plugins import plugins as plugin_registry

    plugin_list = plugin_registry.list()

    if not plugin_list:
        console.print("[yellow]No plugins installed[/yellow]")
        console.print("\nReinstall codonbayes to register the bundled codon plugin:")
        console.print("  pip install -e .")
        return

    table = Table(title="Available Plugins")
    table.add_column("Name", style="cyan")
    table.add_column("Version", style="green")
    table.add_column("Models")

    for name in plugin_list:
        plugin = plugin_registry.load(name)
        table.add_row(name, plugin.version, ", ".join(plugin.models))

    console.print(table)


@app.command()
def info(plugin_name: str):
    """Show information about a plugin."""
    from codonbayes.plugins import plugins as plugin_registry

    try:
        plugin = plugin_registry.load(plugin_name)
    except KeyError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)

    console.print(f"\n[bold]{plugin.name}[/bold] v{plugin.version}")
    console.print(f"\n{plugin.__doc__ or 'No description available'}")

    if plugin.models:
        console.print(f"\n[cyan]Models:[/cyan] {', '.join(plugin.models.keys())}")
    if plugin.loaders:
        console.print(f"[cyan]Loaders:[/cyan] {', '.join(plugin.loaders.keys())}")
    if plugin.priors:
        console.print(f"[cyan]Priors:[/cyan] {', '.join(plugin.priors.keys())}")


@app.command()
def run(
    fasta: Path = typer.Argument(..., exists=True, dir_okay=False, help="FASTA of coding sequences"),
    expression: Optional[Path] = typer.Option(
        None, "--expression", "-e", exists=True, dir_okay=False,
        help="CSV/TSV of expression measurements (first column gene id)",
    ),
    mixtures: int = typer.Option(1, "--mixtures", "-k", help="Number of gene-sets"),
    mixture_definition: Optional[str] = typer.Option(
        None, "--mixture-definition", help="allUnique, mutationShared or selectionShared"
    ),
    samples: int = typer.Option(1000, "--samples", "-n", help="Trace samples to record"),
    thinning: int = typer.Option(1, "--thinning", "-t", help="Sweeps between samples"),
    adaptive_width: int = typer.Option(100, "--adaptive-width", help="Sweeps between adaptations"),
    adaptive_sweeps: Optional[int] = typer.Option(
        None, "--adaptive-sweeps", help="Length of the adaptive phase (default: half the run)"
    ),
    sphi: float = typer.Option(1.0, "--sphi", help="Initial s_phi for every gene-set"),
    shared_sphi: bool = typer.Option(False, "--shared-sphi", help="Estimate one s_phi for all gene-sets"),
    sepsilon: float = typer.Option(0.1, "--sepsilon", help="Initial s_epsilon"),
    est_expression: bool = typer.Option(True, "--expression-updates/--no-expression-updates"),
    est_csp: bool = typer.Option(True, "--csp/--no-csp"),
    est_hyper: bool = typer.Option(True, "--hyper/--no-hyper"),
    est_mix: bool = typer.Option(True, "--mix/--no-mix"),
    fix_noise: bool = typer.Option(False, "--fix-noise", help="Keep s_epsilon fixed"),
    assignment_mode: str = typer.Option("sample", "--assignment-mode", help="sample or probabilities"),
    genetic_code: str = typer.Option("Universal", "--genetic-code", help="NCBI genetic code name"),
    burn_in: int = typer.Option(0, "--burn-in", help="Trace samples dropped from summaries"),
    workers: int = typer.Option(1, "--workers", "-j", help="Threads for likelihood evaluation"),
    seed: Optional[int] = typer.Option(None, "--seed", help="Random seed"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Run the log-linear codon model on a FASTA file and summarise the trace."""
    from codonbayes.core.config import RunConfig
    from codonbayes.core.driver import run_mcmc
    from codonbayes.core.errors import CodonBayesError
    from codonbayes.plugins.codon.loaders import load_gene_data
    from codonbayes.plugins.codon.models import LogLinearCodonModel
    from codonbayes.plugins.codon.states.codons import CodonTable

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )

    try:
        codon_table = CodonTable.from_genetic_code(genetic_code)
        data = load_gene_data(fasta, expression, codon_table=codon_table)
        config = RunConfig(
            num_mixtures=mixtures,
            sphi=sphi,
            share_sphi=shared_sphi,
            init_sepsilon=sepsilon,
            mixture_definition=mixture_definition,
            fix_observation_noise=fix_noise,
            samples=samples,
            thinning=thinning,
            adaptive_width=adaptive_width,
            adaptive_sweeps=adaptive_sweeps,
            est_expression=est_expression,
            est_csp=est_csp,
            est_hyper=est_hyper,
            est_mix=est_mix,
            assignment_mode=assignment_mode,
            n_workers=workers,
            seed=seed,
        )
        driver = run_mcmc(config, data, LogLinearCodonModel(codon_table))
    except (CodonBayesError, ValueError, OSError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)

    trace = driver.store.trace
    if burn_in >= len(trace):
        console.print(f"[red]Error: burn-in {burn_in} leaves no samples (trace has {len(trace)})[/red]")
        raise typer.Exit(code=1)

    _print_acceptance(driver)
    _print_hyperparameters(driver, burn_in)
    _print_expression(driver, burn_in)


def _print_acceptance(driver) -> None:
    rates = defaultdict(list)
    for (kind, _), rate in driver.proposals.acceptance_summary().items():
        rates[kind].append(rate)

    table = Table(title="Acceptance Rates")
    table.add_column("Block", style="cyan")
    table.add_column("Kernels", justify="right")
    table.add_column("Mean", justify="right", style="green")
    table.add_column("Min", justify="right")
    table.add_column("Max", justify="right")
    table.add_column("Non-finite", justify="right", style="yellow")

    rejected = driver.scheduler.numerical_rejections
    for kind, values in rates.items():
        values = np.asarray(values, dtype=float)
        table.add_row(
            kind.value,
            str(len(values)),
            f"{np.nanmean(values):.3f}",
            f"{np.nanmin(values):.3f}",
            f"{np.nanmax(values):.3f}",
            str(rejected.get(kind, 0)),
        )
    console.print(table)


def _print_hyperparameters(driver, burn_in: int) -> None:
    from codonbayes.core.parameters import BlockKind

    trace = driver.store.trace
    weights = trace.posterior_mean(BlockKind.MIXTURE_WEIGHTS, burn_in)
    sphi = np.broadcast_to(trace.posterior_mean(BlockKind.SPHI, burn_in), weights.shape)
    sizes = np.bincount(driver.store.assignment, minlength=len(weights))

    table = Table(title="Gene-sets (posterior mean)")
    table.add_column("Set", style="cyan")
    table.add_column("s_phi", justify="right", style="green")
    table.add_column("Weight", justify="right")
    table.add_column("Genes", justify="right")
    for k, (s, w) in enumerate(zip(sphi, weights)):
        table.add_row(str(k + 1), f"{s:.4f}", f"{w:.3f}", str(sizes[k]))
    console.print(table)

    sepsilon = trace.posterior_mean(BlockKind.SEPSILON, burn_in)
    if len(sepsilon):
        names = driver.store.data.observation_names
        console.print(
            "[cyan]s_epsilon:[/cyan] "
            + ", ".join(f"{name}={value:.4f}" for name, value in zip(names, sepsilon))
        )


def _print_expression(driver, burn_in: int, limit: int = 20) -> None:
    from codonbayes.core.parameters import BlockKind

    trace = driver.store.trace
    phi = trace.values(BlockKind.EXPRESSION, burn_in)
    membership = trace.assignment_posterior(burn_in)
    ids = driver.store.data.ids

    table = Table(title=f"Expression phi (first {min(limit, len(ids))} of {len(ids)} genes)")
    table.add_column("Gene", style="cyan")
    table.add_column("Mean", justify="right", style="green")
    table.add_column("2.5%", justify="right")
    table.add_column("97.5%", justify="right")
    table.add_column("Set", justify="right")
    lower, upper = np.quantile(phi, [0.025, 0.975], axis=0)
    for g, gene_id in enumerate(ids[:limit]):
        table.add_row(
            gene_id,
            f"{phi[:, g].mean():.4f}",
            f"{lower[g]:.4f}",
            f"{upper[g]:.4f}",
            str(int(np.argmax(membership[g])) + 1),
        )
    console.print(table)


if __name__ == "__main__":
    app()
