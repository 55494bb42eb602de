import click
import json
import logging
from dotenv import load_dotenv
from pdxschema.config.loader import (
    DEFAULT_CONFIG,
    AnalysisOptions,
    KeywordSet,
    MAX_DEPTH_DEFAULT,
    MAX_TYPES_DEFAULT,
    load_config,
)

# Load .env file automatically
load_dotenv()
from pdxschema.core.utils.fs import ensure_directory, create_file_if_missing
from pdxschema.core.engine import SchemaTool, analyze_files, write_report
from pdxschema.core.exceptions import PdxSchemaError

# Configure logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')


@click.group()
@click.version_option(version="0.1.0", prog_name="pdxschema")
@click.option("--verbose", "-v", is_flag=True, help="Log per-path analysis decisions")
def cli(verbose):
    """pdxschema: Infer typed schemas from Clausewitz save files."""
    if verbose:
        logging.getLogger("pdxschema").setLevel(logging.DEBUG)


@cli.command()
def init():
    """Initialize a new pdxschema project."""
    click.echo("Initializing pdxschema project...")

    # Create directories
    ensure_directory("sources")
    ensure_directory("sources/gamestate")  # Convention directory for the default schema
    ensure_directory("outputs")

    # Create config file
    if create_file_if_missing("pdxschema.yml", DEFAULT_CONFIG):
        click.echo("Created pdxschema.yml")
    else:
        click.echo("pdxschema.yml already exists.")

    click.echo("\nProject initialized successfully!")
    click.echo("\nNext steps:")
    click.echo("  1. Add save files to:  sources/gamestate/")
    click.echo("  2. Tune analysis in:   pdxschema.yml")
    click.echo("  3. Infer the schema:   pdxschema run")


@cli.command()
@click.option("--schema", "-s", help="Run only this schema (default: all)")
def run(schema):
    """Infer schemas for the configured save files."""
    try:
        config = load_config()
        engine = SchemaTool(config)
        for report in engine.run(schema_name=schema):
            _echo_report_line(report)
    except PdxSchemaError as e:
        click.echo(f"Error: {e}", err=True)


@cli.command()
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option("--root-name", default="Root", show_default=True, help="Name of the root type")
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Write the schema JSON here instead of stdout")
@click.option("--entry", help="Member to read from zipped .sav archives (default: gamestate)")
@click.option("--max-depth", default=MAX_DEPTH_DEFAULT, show_default=True, help="Deepest nesting to type")
@click.option("--max-types", default=MAX_TYPES_DEFAULT, show_default=True, help="Most record types to create")
@click.option(
    "--keywords",
    type=click.Choice([k.value for k in KeywordSet]),
    default=KeywordSet.CSHARP.value,
    show_default=True,
    help="Reserved words generated names must avoid",
)
def analyze(files, root_name, output, entry, max_depth, max_types, keywords):
    """Infer a schema from FILES without a config file."""
    try:
        options = AnalysisOptions(
            max_depth=max_depth,
            max_types=max_types,
            keywords=KeywordSet(keywords),
        )
        report = analyze_files(list(files), root_name=root_name, options=options, entry=entry)
    except PdxSchemaError as e:
        raise click.ClickException(str(e))

    if output:
        write_report(report, output)
        _echo_report_line(report)
    else:
        click.echo(json.dumps(report.to_output_dict(), indent=2))


@cli.command()
@click.option("--schema", "-s", help="Summarize only this schema (default: all)")
def summary(schema):
    """Summarize schemas written by earlier runs."""
    try:
        config = load_config()
        engine = SchemaTool(config)
        analyses = engine.summarize(schema_name=schema)
    except PdxSchemaError as e:
        click.echo(f"Error: {e}", err=True)
        return

    if not analyses:
        click.echo("No schemas written yet. Run 'pdxschema run' first.")
        return

    for analysis in analyses:
        click.echo(f"\n{analysis.name}")
        click.echo(analysis.format_summary())


def _echo_report_line(report):
    problems = sum(1 for d in report.diagnostics if d.severity.value != "info")
    click.echo(
        f"{report.schema_name}: {len(report.types)} types, "
        f"{len(report.diagnostics)} diagnostics ({problems} warnings or errors)"
    )


if __name__ == "__main__":
    cli()
