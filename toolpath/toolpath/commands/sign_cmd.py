"""Sign and verify commands."""

from __future__ import annotations

import dataclasses
import json
from pathlib import Path
from typing import Iterable, Mapping

from rich.console import Console
from rich.table import Table

from ..document import ActorDefinition, Document, DocumentKind, Graph, Key, Step
from ..document import Path as PathDoc
from ..errors import SignatureError, ToolpathError
from ..signing import SignatureScope, SshSigningKey, VerificationReport, key_entry, sign_path, sign_step, verify_all
from ._io import load_document, select_path, write_document


def _with_key(actors: Mapping[str, ActorDefinition] | None, signer: str, key: Key) -> ActorDefinition:
    definition = (actors or {}).get(signer) or ActorDefinition()
    if definition.key_for(key.fingerprint) is not None:
        return definition
    return dataclasses.replace(definition, keys=definition.keys + (key,))


def _sign_step(step: Step, signing_key: SshSigningKey, signer: str, key: Key | None) -> Step:
    if key is not None:
        step = step.with_actor(signer, _with_key(step.meta.actors if step.meta else None, signer, key))
    return sign_step(step, signing_key, signer)


def _sign_path(
    path: PathDoc,
    scope: SignatureScope,
    signing_key: SshSigningKey,
    signer: str,
    *,
    step_id: str | None,
    key: Key | None,
) -> PathDoc:
    if key is not None:
        path = path.with_actor(signer, _with_key(path.meta.actors if path.meta else None, signer, key))

    if scope is not SignatureScope.STEP_AUTHOR:
        return sign_path(path, scope, signing_key, signer)

    if step_id is not None and step_id not in path.step_ids:
        raise SignatureError(f"path {path.id!r} has no step {step_id!r}")
    steps = [
        sign_step(step, signing_key, signer) if step_id is None or step.id == step_id else step
        for step in path.steps
    ]
    return path.with_steps(steps)


def _replace_path(graph: Graph, signed: PathDoc) -> Graph:
    return graph.with_paths(
        signed if isinstance(entry, PathDoc) and entry.id == signed.id else entry
        for entry in graph.paths
    )


def run_sign(
    source: str,
    *,
    key_file: Path,
    signer: str,
    scope: SignatureScope,
    step_id: str | None = None,
    path_id: str | None = None,
    password: str | None = None,
    add_key: bool = True,
    pretty: bool = False,
    out: Path | None = None,
) -> int:
    err = Console(stderr=True)

    try:
        signing_key = SshSigningKey.from_openssh(
            key_file.read_bytes(),
            password=password.encode("utf-8") if password else None,
        )
        document = load_document(source)
        key = key_entry(signing_key) if add_key else None

        if document.kind is DocumentKind.STEP:
            if scope is not SignatureScope.STEP_AUTHOR:
                raise SignatureError(f"{scope.value} cannot be applied to a Step document")
            signed: Document = Document.of(_sign_step(document.as_step(), signing_key, signer, key))
        else:
            path = _sign_path(
                select_path(document, path_id),
                scope,
                signing_key,
                signer,
                step_id=step_id,
                key=key,
            )
            if document.kind is DocumentKind.GRAPH:
                signed = Document.of(_replace_path(document.as_graph(), path))
            else:
                signed = Document.of(path)
    except OSError as exc:
        err.print(f"Cannot read input: {exc}", style="bold red")
        return 1
    except ToolpathError as exc:
        err.print(f"Signing failed: {exc}", style="bold red")
        return 1

    write_document(signed, pretty=pretty, out=out)
    err.print(f"[green]Signed[/] {signed.describe()} as {signer} ({scope.value}, {signing_key.fingerprint()})")
    return 0


def _reports(document: Document, scopes: list[SignatureScope], path_id: str | None) -> list[VerificationReport]:
    if document.kind is DocumentKind.GRAPH and path_id is None:
        graph = document.as_graph()
        return [verify_all(path, scopes, graph=graph) for path in graph.inline_paths]
    graph = document.as_graph() if document.kind is DocumentKind.GRAPH else None
    return [verify_all(select_path(document, path_id), scopes, graph=graph)]


def run_verify(
    source: str,
    *,
    required: Iterable[SignatureScope],
    path_id: str | None = None,
    output_json: bool = False,
) -> int:
    console = Console()
    err = Console(stderr=True)
    scopes = list(required)

    try:
        reports = _reports(load_document(source), scopes, path_id)
    except OSError as exc:
        err.print(f"Cannot read {source}: {exc}", style="bold red")
        return 1
    except ToolpathError as exc:
        err.print(str(exc), style="bold red")
        return 1

    if not reports:
        err.print(f"No inline paths to verify in {source}", style="bold red")
        return 1

    ok = all(reports)
    if output_json:
        console.print_json(json.dumps({"ok": ok, "reports": [r.to_dict() for r in reports]}))
        return 0 if ok else 1

    table = Table(title=f"Signatures ({', '.join(s.value for s in scopes) or 'none required'})")
    table.add_column("path", style="cyan", no_wrap=True)
    table.add_column("scope", style="magenta")
    table.add_column("target")
    table.add_column("signer")
    table.add_column("result")
    for report in reports:
        for scope, target_id, signer in report.verified:
            table.add_row(report.path_id, scope.value, target_id, signer, "[green]verified[/]")
        for failure in report.failures:
            table.add_row(
                report.path_id,
                failure.scope.value,
                failure.target_id,
                failure.signer or "",
                f"[red]{failure.reason}[/]",
            )
    console.print(table)

    if ok:
        err.print(f"[green]All required signatures verified[/] ({len(reports)} paths)")
        return 0
    failed = sum(len(r.failures) for r in reports)
    err.print(f"[bold red]{failed} required signatures missing or invalid[/]")
    return 1
