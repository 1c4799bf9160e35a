"""
Command-line interface for the asthma risk pipeline.

Usage:
    asthma-risk generate-data --children 2000 --output ./claims.db
    asthma-risk build-table --config ./config.yaml --output ./risk_table.csv
    asthma-risk fit-models --table ./risk_table.csv --config ./config.yaml
    asthma-risk list-code-sets
"""

import logging
import os
from typing import Optional

import click


def _load_config(config_path: Optional[str], database: Optional[str],
                 medication_reference: Optional[str], zip_reference: Optional[str]):
    """Run configuration from a YAML file, with command-line paths taking precedence."""
    from .config import RunConfig, load_run_config

    config = load_run_config(config_path) if config_path else RunConfig()
    if database:
        config.database = {"type": "sqlite", "path": database}
    if medication_reference:
        config.medication_reference = medication_reference
    if zip_reference:
        config.zip_reference = zip_reference
    return config


@click.group()
@click.version_option(version="0.1.0")
@click.option('--verbose', '-v', is_flag=True, help='Log pipeline progress')
def main(verbose: bool):
    """Asthma Risk - Pediatric asthma utilization risk from Medicaid claims."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )


@main.command()
@click.option('--children', '-n', default=2000, help='Number of children to generate')
@click.option('--output', '-o', default='./synthetic_claims.db', help='Output database path')
@click.option('--seed', '-s', default=42, help='Random seed for reproducibility')
def generate_data(children: int, output: str, seed: int):
    """Generate a synthetic claims warehouse and reference files."""
    from .synthetic_data import generate_synthetic_claims_data

    click.echo(f"Generating synthetic claims data for {children} children...")
    db, references = generate_synthetic_claims_data(db_path=output, n_children=children, seed=seed)
    click.echo(f"Data saved to: {output}")
    for name, path in references.items():
        click.echo(f"  {name}: {path}")

    counts = db.get_table_counts()
    click.echo("\nDatabase summary:")
    for table, count in counts.items():
        click.echo(f"  {table}: {count:,} records")


@main.command()
@click.option('--config', '-c', 'config_path', default=None, help='Path to config.yaml')
@click.option('--database', '-d', default=None, help='Path to SQLite claims database')
@click.option('--medications', '-m', default=None, help='Medication reference CSV')
@click.option('--zips', '-z', default=None, help='ZIP reference (.csv or .dta)')
@click.option('--output', '-o', default='./risk_table.csv', help='Output CSV path')
def build_table(config_path: Optional[str], database: Optional[str],
                medications: Optional[str], zips: Optional[str], output: str):
    """Build the one-row-per-child risk table."""
    from .database import Database, connection_string_from_config
    from .errors import AsthmaRiskError
    from .pipeline import build_risk_table

    config = _load_config(config_path, database, medications, zips)
    db = Database(connection_string_from_config(config.database))
    click.echo(f"Building risk table for {config.baseline_year} -> {config.followup_year}")

    try:
        with db.session() as session:
            table = build_risk_table(session, config)
    except (AsthmaRiskError, ValueError) as e:
        raise click.ClickException(str(e))

    table.to_csv(output, index=False)
    click.echo(f"Children in risk table: {len(table):,}")
    click.echo(f"With a baseline event: {int(table['baseline'].sum()):,}")
    click.echo(f"With an outcome event: {int(table['outcome'].sum()):,}")
    click.echo(f"Exported to: {output}")


@main.command()
@click.option('--table', '-t', 'table_path', required=True, help='Risk table CSV from build-table')
@click.option('--config', '-c', 'config_path', default=None, help='Path to config.yaml')
@click.option('--output', '-o', default=None, help='Directory for coefficient CSVs')
def fit_models(table_path: str, config_path: Optional[str], output: Optional[str]):
    """Fit the default logistic models and compare m1 with m2."""
    import pandas as pd
    from .pipeline import run_models

    config = _load_config(config_path, None, None, None)
    table = pd.read_csv(table_path)

    try:
        run = run_models(table, config)
    except ValueError as e:
        raise click.ClickException(str(e))

    for result in run.results.values():
        click.echo(f"\n{result.name}: {result.formula}")
        click.echo("-" * 50)
        click.echo(f"Observations: {result.nobs:,} ({result.n_dropped:,} dropped as missing)")
        click.echo(f"Log-likelihood: {result.llf:.2f} (null {result.llnull:.2f})")
        click.echo(f"Pseudo R-squared: {result.prsquared:.3f}  AIC: {result.aic:.1f}")
        if not result.converged:
            click.echo("Warning: did not converge")
        for _, row in result.coefficients.iterrows():
            click.echo(
                f"  {row['variable']:<45} OR {row['or']:7.3f} "
                f"({row['or_ci_lower']:.3f}-{row['or_ci_upper']:.3f})  p={row['pval']:.3f}"
            )
        if output:
            os.makedirs(output, exist_ok=True)
            result.coefficients.to_csv(os.path.join(output, f"{result.name}.csv"), index=False)

    if run.comparison:
        lr = run.comparison
        click.echo(f"\nLikelihood ratio test {lr.restricted} vs {lr.full}:")
        click.echo(f"  chi2={lr.statistic:.2f}, df={lr.df:.0f}, p={lr.p_value:.4f}")
    for note in run.notes:
        click.echo(f"Note: {note}")


@main.command()
def list_code_sets():
    """List diagnosis code sets and medication classes."""
    from .code_sets import CONTROLLER_CATEGORIES, DIAGNOSIS_CODE_SETS, RELIEVER_CATEGORIES

    click.echo("Diagnosis code sets:")
    click.echo("-" * 50)
    for key, code_set in DIAGNOSIS_CODE_SETS.items():
        click.echo(f"  {key}: {code_set.name}")
        click.echo(f"    Prefixes: {code_set.prefixes}")
    click.echo("-" * 50)
    click.echo(f"Controller classes: {', '.join(CONTROLLER_CATEGORIES)}")
    click.echo(f"Reliever classes: {', '.join(RELIEVER_CATEGORIES)}")


if __name__ == '__main__':
    main()
