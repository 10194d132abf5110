"""CLI entrypoint for actionflow."""

import logging

import rich_click as click

from actionflow import __version__
from actionflow.actions.controllers import (
    ActionClassifyCommand,
    ActionCliController,
    ActionExtractCommand,
    ActionRunCommand,
)

click.rich_click.USE_MARKDOWN = True
ACTION_CONTROLLER = ActionCliController()


@click.group()
@click.version_option(version=__version__, prog_name="actionflow")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable debug logging.")
def actionflow(verbose: bool) -> None:
    """Execute model-proposed actions with approval and remediation."""

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@actionflow.command("extract")
@click.argument("source", type=click.File("r"), default="-")
def extract(source) -> None:
    """Print the first action payload found in model text."""

    _emit_lines(ACTION_CONTROLLER.extract(ActionExtractCommand(text=source.read())))


@actionflow.command("classify")
@click.argument("command")
def classify(command: str) -> None:
    """Show how a bare command string would be routed."""

    _emit_lines(ACTION_CONTROLLER.classify(ActionClassifyCommand(command=command)))


@actionflow.command("run")
@click.argument("source", type=click.File("r"), required=False)
@click.option(
    "--prompt",
    default=None,
    help="Ask the configured model for an action instead of reading model text.",
)
@click.option("--yes", "assume_yes", is_flag=True, default=False, help="Approve every action.")
@click.option(
    "--no-remediation",
    "no_remediation",
    is_flag=True,
    default=False,
    help="Do not ask the model for recovery steps after a failed terminal action.",
)
def run(source, prompt: str | None, assume_yes: bool, no_remediation: bool) -> None:
    """Approve and execute the action in SOURCE (or stdin), then offer fixes on failure."""

    if prompt is None and source is None:
        source = click.get_text_stream("stdin")
    try:
        lines = ACTION_CONTROLLER.run(
            ActionRunCommand(
                text=source.read() if prompt is None else None,
                prompt=prompt,
                assume_yes=assume_yes,
                remediation=not no_remediation,
                echo=click.echo,
                write=_write_chunk,
                confirm=lambda question: click.confirm(question, default=False),
            ),
        )
    except ValueError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


def _write_chunk(chunk: str) -> None:
    click.echo(chunk, nl=False)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    actionflow()
