"""CLI entrypoint for toolpath."""

import logging
import sys
from pathlib import Path

import click

from . import __version__
from .config import ToolpathConfig, load_config
from .signing import SignatureScope

SCOPE_CHOICES = [s.value for s in SignatureScope]


def _configure_logging() -> None:
    from rich.console import Console
    from rich.logging import RichHandler

    logger = logging.getLogger("toolpath")
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        logger.addHandler(RichHandler(console=Console(stderr=True), show_path=False))
    logger.setLevel(logging.DEBUG)


def _config(ctx: click.Context) -> ToolpathConfig:
    return ctx.obj["config"]


def _pretty(ctx: click.Context, pretty: bool | None) -> bool:
    return _config(ctx).pretty if pretty is None else pretty


pretty_option = click.option(
    "--pretty/--compact",
    "pretty",
    default=None,
    help="Indent JSON output (defaults to [output] pretty in .toolpath.toml)",
)
out_option = click.option(
    "--out",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the document to a file instead of stdout",
)
json_option = click.option("--json", "output_json", is_flag=True, help="Output JSON instead of a table")
path_id_option = click.option("--path-id", default=None, help="Path to operate on when FILE is a Graph")


@click.group()
@click.version_option(__version__, prog_name="toolpath")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Path to a .toolpath.toml (defaults to the nearest one above the working directory)",
)
@click.option("--verbose", is_flag=True, help="Log debug output to stderr")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, verbose: bool) -> None:
    """toolpath - Provenance for changes to artifacts.

    Validate, query, merge, correlate, sign and verify Step/Path/Graph
    documents. FILE may be - to read from stdin.
    """
    ctx.ensure_object(dict)
    if verbose:
        _configure_logging()
    try:
        ctx.obj["config"] = load_config(config_path)
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc


@cli.command()
@click.argument("source", metavar="FILE")
@json_option
def validate(source: str, output_json: bool) -> None:
    """Parse FILE and check document invariants."""
    from .commands.validate_cmd import run_validate

    exit_code = run_validate(source, output_json=output_json)
    sys.exit(exit_code)


# =============================================================================
# Query commands
# =============================================================================


@cli.group()
def query() -> None:
    """Ancestry, dead-end and filter queries over a Path."""
    pass


@query.command("ancestors")
@click.argument("source", metavar="FILE")
@click.option("--step-id", required=True, help="Step to walk back from")
@path_id_option
@json_option
def query_ancestors(source: str, step_id: str, path_id: str | None, output_json: bool) -> None:
    """List STEP-ID and every step it descends from."""
    from .commands.query_cmd import run_ancestors

    exit_code = run_ancestors(source, step_id, path_id=path_id, output_json=output_json)
    sys.exit(exit_code)


@query.command("dead-ends")
@click.argument("source", metavar="FILE")
@path_id_option
@json_option
def query_dead_ends(source: str, path_id: str | None, output_json: bool) -> None:
    """List steps that are not ancestors of the Path head."""
    from .commands.query_cmd import run_dead_ends

    exit_code = run_dead_ends(source, path_id=path_id, output_json=output_json)
    sys.exit(exit_code)


@query.command("filter")
@click.argument("source", metavar="FILE")
@click.option("--actor", default=None, help="Actor prefix, e.g. human: or agent:claude")
@click.option("--artifact", default=None, help="Artifact key the step must change")
@click.option("--after", default=None, help="Earliest timestamp (ISO-8601, inclusive)")
@click.option("--before", default=None, help="Latest timestamp (ISO-8601, inclusive)")
@path_id_option
@json_option
def query_filter(
    source: str,
    actor: str | None,
    artifact: str | None,
    after: str | None,
    before: str | None,
    path_id: str | None,
    output_json: bool,
) -> None:
    """List steps matching every given filter."""
    from .commands.query_cmd import run_filter

    exit_code = run_filter(
        source,
        path_id=path_id,
        actor=actor,
        artifact=artifact,
        after=after,
        before=before,
        output_json=output_json,
    )
    sys.exit(exit_code)


# =============================================================================
# Graph commands
# =============================================================================


@cli.command()
@click.argument("sources", metavar="FILES...", nargs=-1, required=True)
@click.option("--title", default=None, help="Title for the merged Graph")
@pretty_option
@out_option
@click.pass_context
def merge(ctx: click.Context, sources: tuple[str, ...], title: str | None, pretty: bool | None, out: Path | None) -> None:
    """Merge Path and Graph documents into one Graph."""
    from .commands.merge_cmd import run_merge

    exit_code = run_merge(list(sources), title=title, pretty=_pretty(ctx, pretty), out=out)
    sys.exit(exit_code)


@cli.command()
@click.argument("source", metavar="FILE")
@click.option("--summary/--no-summary", default=True, show_default=True, help="Print shared revisions to stderr")
@pretty_option
@out_option
@click.pass_context
def correlate(ctx: click.Context, source: str, summary: bool, pretty: bool | None, out: Path | None) -> None:
    """Add same-change and path relation refs to a Graph."""
    from .commands.correlate_cmd import run_correlate

    exit_code = run_correlate(source, pretty=_pretty(ctx, pretty), out=out, summary=summary)
    sys.exit(exit_code)


# =============================================================================
# Signing commands
# =============================================================================


@cli.command()
@click.argument("source", metavar="FILE")
@click.option(
    "--key-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    envvar="TOOLPATH_KEY_FILE",
    default=None,
    help="OpenSSH or PEM private key (defaults to [sign] key_file)",
)
@click.option("--signer", envvar="TOOLPATH_SIGNER", default=None, help="Actor signing, e.g. human:alex")
@click.option(
    "--scope",
    type=click.Choice(SCOPE_CHOICES),
    default=SignatureScope.STEP_AUTHOR.value,
    show_default=True,
    help="What the signature covers",
)
@click.option("--step-id", default=None, help="Only sign this step (step:author on a Path)")
@path_id_option
@click.option("--passphrase", envvar="TOOLPATH_KEY_PASSPHRASE", default=None, help="Private key passphrase")
@click.option(
    "--add-key/--no-add-key",
    default=True,
    show_default=True,
    help="Record the public key in the actor directory",
)
@pretty_option
@out_option
@click.pass_context
def sign(
    ctx: click.Context,
    source: str,
    key_file: Path | None,
    signer: str | None,
    scope: str,
    step_id: str | None,
    path_id: str | None,
    passphrase: str | None,
    add_key: bool,
    pretty: bool | None,
    out: Path | None,
) -> None:
    """Sign FILE and write the signed document."""
    from .commands.sign_cmd import run_sign

    config = _config(ctx)
    key_file = key_file or config.key_file
    signer = signer or config.signer
    if key_file is None:
        raise click.UsageError("No signing key. Pass --key-file or set [sign] key_file in .toolpath.toml.")
    if signer is None:
        raise click.UsageError("No signer. Pass --signer or set [sign] signer in .toolpath.toml.")

    exit_code = run_sign(
        source,
        key_file=key_file,
        signer=signer,
        scope=SignatureScope.parse(scope),
        step_id=step_id,
        path_id=path_id,
        password=passphrase,
        add_key=add_key,
        pretty=_pretty(ctx, pretty),
        out=out,
    )
    sys.exit(exit_code)


@cli.command()
@click.argument("source", metavar="FILE")
@click.option(
    "--require",
    "required",
    type=click.Choice(SCOPE_CHOICES),
    multiple=True,
    help="Scope that must verify (repeatable; defaults to [verify] required_scopes)",
)
@path_id_option
@json_option
@click.pass_context
def verify(ctx: click.Context, source: str, required: tuple[str, ...], path_id: str | None, output_json: bool) -> None:
    """Verify required signatures; exit 1 if any is missing or invalid."""
    from .commands.sign_cmd import run_verify

    scopes = [SignatureScope.parse(s) for s in required] if required else list(_config(ctx).required_scopes)
    exit_code = run_verify(source, required=scopes, path_id=path_id, output_json=output_json)
    sys.exit(exit_code)


def main() -> None:
    """Main entrypoint."""
    cli()


if __name__ == "__main__":
    main()
