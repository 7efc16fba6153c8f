"""CLI application for domain schema conformance scans."""

import typer

from domainops.cli.commands.inventory import domains, entities, report
from domainops.cli.commands.scan import doc, scan
from domainops.core.logging import configure_logging

app = typer.Typer(
    help="domainops - domain schema conformance scans",
    no_args_is_help=True,
)


@app.callback()
def _init(
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Log level (DEBUG, INFO, WARNING, ERROR). Defaults to $DOMAINOPS_LOG_LEVEL or WARNING.",
    ),
):
    """Configure logging once per invocation."""
    configure_logging(log_level)


app.command()(scan)
app.command()(doc)
app.command()(entities)
app.command()(domains)
app.command()(report)


if __name__ == "__main__":
    app()
