"""Common CLI options for the CLI."""

import typer

RegistryOpt = typer.Option(
    None,
    "--registry",
    "-r",
    help="Domain registry JSON (default: $DOMAINOPS_REGISTRY or ~/.config/domainops/domains.json)",
    dir_okay=False,
)

ReferenceDomainOpt = typer.Option(
    None,
    "--reference-domain",
    help="Domain reported as the conformance reference (default: lab)",
)

DomainTypeOpt = typer.Option(
    [],
    "--domain-type",
    "-t",
    help="Only scan domains of this type. This is reusable.",
    show_default=False,
)

ConcurrencyOpt = typer.Option(
    None,
    "--concurrency",
    "-n",
    min=1,
    help="Number of domains scanned in parallel (default: 8)",
)

TimeoutOpt = typer.Option(
    None,
    "--timeout",
    min=0.1,
    help="Per-domain deadline in seconds (default: 60)",
)

SampleLimitOpt = typer.Option(
    None,
    "--sample-limit",
    min=1,
    help="Distinct values kept per categorical field (default: 50)",
)

SelectOpt = typer.Option(
    False,
    "--select",
    "-s",
    help="Pick the domains to scan interactively",
)

DocOpt = typer.Option(
    False,
    "--doc",
    help="Also regenerate schema.md",
)

StrictOpt = typer.Option(
    False,
    "--strict",
    help="Exit with code 1 when any domain failed",
)

EntityOpt = typer.Option(
    None,
    "--entity",
    "-e",
    help="Only list domains expected to host this entity",
)

DivergencesOpt = typer.Option(
    True,
    "--divergences/--no-divergences",
    help="Show column-level differences of diverged domains",
)

SchemaPathArg = typer.Argument(
    ...,
    help="Path to <entities>/<entity>/<model>/schema.json",
    dir_okay=False,
)
