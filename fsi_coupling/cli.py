"""
Command-line interface for fsi_coupling.

Runs the linear fixed-point benchmark with Anderson mixing or fixed
relaxation, and validates the installation.
"""

import sys

import click
import numpy as np

from fsi_coupling import __version__


def _build_accelerator(evaluator, method, config, relaxation, max_iterations):
    from fsi_coupling.alg.coupling import AndersonAccelerator, create_fixed_relaxation_accelerator

    if method == "relaxation":
        return create_fixed_relaxation_accelerator(
            evaluator,
            relaxation=relaxation,
            max_iterations=max_iterations or 200,
            convergence=config.convergence,
        )

    overrides = {"max_iterations": max_iterations} if max_iterations else {}
    return AndersonAccelerator(evaluator, config=config.anderson, convergence=config.convergence, **overrides)


@click.group()
@click.version_option(version=__version__, prog_name="fsi_coupling")
def main():
    """
    fsi_coupling: Interface quasi-Newton acceleration for partitioned coupling

    Anderson mixing (IQN-ILS) with history reuse across iterations, coupling
    stages and time steps.
    """


@main.command()
@click.option("--dimension", "-n", type=int, default=4, help="Interface vector length")
@click.option("--seed", type=int, default=0, help="Seed of the random contraction")
@click.option("--spectral-radius", type=float, default=0.8, help="Spectral radius of the iteration matrix")
@click.option(
    "--method", "-m", type=click.Choice(["anderson", "relaxation"]), default="anderson", help="Update rule"
)
@click.option("--relaxation", type=float, default=0.5, help="Relaxation factor for --method relaxation")
@click.option("--max-iterations", type=int, default=None, help="Override the iteration budget")
@click.option("--tolerance", type=float, default=None, help="Override the convergence tolerance")
@click.option("--config", "-c", "config_path", type=click.Path(), default=None, help="YAML configuration file")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
def solve(dimension, seed, spectral_radius, method, relaxation, max_iterations, tolerance, config_path, verbose):
    """
    Solve a random linear fixed-point problem x = A x + b.

    Examples:
        fsi-coupling solve --dimension 4
        fsi-coupling solve -n 20 --method relaxation -v
        fsi-coupling solve --config coupling.yaml
    """
    try:
        from fsi_coupling.config import CouplingConfig, load_coupling_config
        from fsi_coupling.core import LinearFixedPointEvaluator
        from fsi_coupling.utils.fsi_logging import (
            LoggedOperation,
            configure_development_logging,
            configure_logging,
            get_logger,
            log_convergence_analysis,
        )

        config = load_coupling_config(config_path) if config_path else CouplingConfig()
        if tolerance is not None:
            config.convergence.tolerance = tolerance
        if verbose:
            configure_development_logging(include_location=config.logging.include_location)
        else:
            configure_logging(
                level=config.logging.level,
                include_location=config.logging.include_location,
                log_file=config.logging.log_file,
            )
        logger = get_logger("fsi_coupling.cli")

        if verbose:
            click.echo(f"Problem: dimension={dimension}, spectral radius={spectral_radius}, seed={seed}")
            click.echo(f"Method: {method}")

        evaluator = LinearFixedPointEvaluator.random_contraction(
            dimension, spectral_radius=spectral_radius, seed=seed
        )
        accelerator = _build_accelerator(evaluator, method, config, relaxation, max_iterations)

        x0 = np.zeros(dimension)
        xk = np.zeros(dimension)
        if verbose:
            accelerator.log_configuration()
        with LoggedOperation(logger, "coupling solve"), accelerator.stage(0):
            result = accelerator.accelerate(x0, xk)
        log_convergence_analysis(
            logger,
            result.residual_norms,
            result.iterations,
            accelerator.post.checker.config.get_residual_tolerance(),
            result.converged,
        )

        error = float(np.linalg.norm(xk - evaluator.fixed_point))

        click.echo(f"\n{'='*50}")
        click.echo("Coupling Summary")
        click.echo(f"{'='*50}")
        click.echo(f"Converged: {result.converged}")
        click.echo(f"Iterations: {result.iterations}")
        click.echo(f"Evaluations: {result.evaluations}")
        click.echo(f"Final residual: {result.final_residual:.2e}")
        click.echo(f"Error to fixed point: {error:.2e}")
        click.echo(f"Max history columns: {result.max_columns_used}")
        click.echo(f"{'='*50}")

    except Exception as e:
        click.echo(f"Error during solving: {e}", err=True)
        if verbose:
            import traceback

            traceback.print_exc()
        sys.exit(1)


@main.command()
@click.option("--quick", "-q", is_flag=True, help="Skip the benchmark run")
def validate(quick):
    """
    Validate the fsi_coupling installation.

    Examples:
        fsi-coupling validate
        fsi-coupling validate --quick
    """
    click.echo("Validating fsi_coupling installation...")
    click.echo(f"{'='*50}\n")

    all_ok = True

    checks = [
        ("Core package", "fsi_coupling"),
        ("Accelerators", "fsi_coupling.alg.coupling"),
        ("Configuration", "fsi_coupling.config"),
        ("Utils", "fsi_coupling.utils"),
        ("NumPy", "numpy"),
        ("SciPy", "scipy.linalg"),
        ("Pydantic", "pydantic"),
        ("PyYAML", "yaml"),
        ("colorlog", "colorlog"),
    ]

    for name, module in checks:
        try:
            __import__(module)
            click.echo(f"✓ {name}: OK")
        except ImportError as e:
            click.echo(f"✗ {name}: FAILED - {e}")
            all_ok = False

    if not quick:
        click.echo(f"\n{'='*50}")
        click.echo("Running benchmark...")
        click.echo(f"{'='*50}\n")

        try:
            from fsi_coupling.alg.coupling import create_anderson_accelerator
            from fsi_coupling.config import ConvergenceSettings
            from fsi_coupling.core import LinearFixedPointEvaluator

            evaluator = LinearFixedPointEvaluator.random_contraction(4, spectral_radius=0.5, seed=1)
            accelerator = create_anderson_accelerator(
                evaluator, max_used_iterations=4, convergence=ConvergenceSettings(tolerance=1e-10)
            )
            xk = np.zeros(4)
            with accelerator.stage(0):
                result = accelerator.accelerate(np.zeros(4), xk)

            if result.converged:
                click.echo("✓ Benchmark: PASSED")
            else:
                click.echo("✗ Benchmark: NOT CONVERGED")
                all_ok = False
            click.echo(f"  - Iterations: {result.iterations}")

        except Exception as e:
            click.echo(f"✗ Benchmark: FAILED - {e}")
            all_ok = False

    click.echo(f"\n{'='*50}")
    if all_ok:
        click.echo("✓ Validation PASSED")
        click.echo(f"{'='*50}")
        return 0
    else:
        click.echo("✗ Validation FAILED")
        click.echo(f"{'='*50}")
        sys.exit(1)


if __name__ == "__main__":
    main()
