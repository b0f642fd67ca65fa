#!/usr/bin/env python3
"""
bpctl - Declarative buildpack management for Cloud Foundry.

Applies buildpack manifests (YAML/JSON) against a Cloud Controller and keeps
the created GUIDs in a local JSON state file.
"""

import asyncio
import json
import logging
import os
from dataclasses import asdict
from typing import Any, Dict, List, Optional, Tuple

import click
import yaml
from pydantic import Field, ValidationError
from tabulate import tabulate

from caching import BuildpackCache
from cloudfoundry.api import CloudFoundryClient
from cloudfoundry.errors import CloudFoundryError
from config import CLIConfig, get_config
from reconcilers.base import ReconcileResult, ResourceState
from reconcilers.buildpack import BuildpackReconciler, BuildpackSpec

logger = logging.getLogger(__name__)


class ManifestEntry(BuildpackSpec):
    """A manifest buildpack together with the key its state is stored under."""

    key: Optional[str] = Field(
        default=None,
        description="Stable state key; renaming keeps the key (defaults to name)",
    )

    @property
    def state_key(self) -> str:
        return self.key or self.name


def load_manifest(filename: str) -> List[ManifestEntry]:
    """
    Load buildpack specs from a YAML or JSON manifest.

    The manifest is either a single buildpack mapping or a mapping with a
    "buildpacks" list.
    """
    with open(filename, "r") as f:
        if filename.endswith(".yaml") or filename.endswith(".yml"):
            data = yaml.safe_load(f)
        else:
            data = json.load(f)

    if isinstance(data, dict) and "buildpacks" in data:
        entries = data["buildpacks"] or []
    elif isinstance(data, dict):
        entries = [data]
    else:
        raise click.ClickException(f"{filename}: expected a mapping")

    specs = []
    for index, entry in enumerate(entries):
        try:
            specs.append(ManifestEntry.model_validate(entry))
        except ValidationError as e:
            raise click.ClickException(f"{filename}: buildpack #{index}: {e}")

    for label, values in (
        ("names", [spec.name for spec in specs]),
        ("keys", [spec.state_key for spec in specs]),
    ):
        duplicates = sorted({value for value in values if values.count(value) > 1})
        if duplicates:
            raise click.ClickException(
                f"{filename}: duplicate buildpack {label}: {', '.join(duplicates)}"
            )
    return specs


def load_state(path: str) -> Dict[str, ResourceState]:
    """Load persisted state keyed by manifest key."""
    if not os.path.exists(path):
        return {}
    with open(path, "r") as f:
        data = json.load(f)
    return {name: ResourceState.from_dict(entry) for name, entry in data.items()}


def save_state(path: str, states: Dict[str, ResourceState]) -> None:
    """Persist state, dropping entries whose resource no longer exists."""
    data = {name: state.to_dict() for name, state in states.items() if state.id}
    with open(path, "w") as f:
        json.dump(data, f, indent=2, sort_keys=True)


class BuildpackCLI:
    """Wires configuration, client, cache and reconciler for one command."""

    def __init__(self, state_file: str):
        cfg = get_config()
        self.state_file = state_file
        self.client = CloudFoundryClient(cfg.cloudfoundry)
        self.cache = BuildpackCache(ttl=cfg.cache.ttl)
        self.reconciler = BuildpackReconciler(self.client, self.cache)
        self.states = load_state(state_file)

    def state_for(self, spec: ManifestEntry) -> ResourceState:
        return self.states.setdefault(spec.state_key, ResourceState())

    def orphaned(self, specs: List[ManifestEntry]) -> List[str]:
        """State keys that are recorded but no longer in the manifest."""
        keys = {spec.state_key for spec in specs}
        return sorted(
            key for key, state in self.states.items() if state.id and key not in keys
        )

    async def apply(
        self, specs: List[ManifestEntry], prune: bool = True
    ) -> List[Tuple[str, ReconcileResult]]:
        """
        Reconcile every manifest entry, pruning removed entries first.

        Pruning runs before creation so a buildpack moved to a new key can
        reuse its name.
        """
        results = []
        if prune:
            for key in self.orphaned(specs):
                logger.info(
                    f"Deleting buildpack {key} because it is no longer in the manifest"
                )
                results.append((key, await self._destroy(self.states[key])))

        for spec in specs:
            result = await self.reconciler.reconcile(spec, self.state_for(spec))
            if result.changed:
                self.cache.invalidate(self.client.identity)
            results.append((spec.state_key, result))
        save_state(self.state_file, self.states)
        return results

    async def destroy(
        self, specs: List[ManifestEntry]
    ) -> List[Tuple[str, ReconcileResult]]:
        results = [
            (spec.state_key, await self._destroy(self.state_for(spec)))
            for spec in specs
        ]
        save_state(self.state_file, self.states)
        return results

    async def _destroy(self, state: ResourceState) -> ReconcileResult:
        result = await self.reconciler.destroy(state)
        if result.changed:
            self.cache.invalidate(self.client.identity)
        return result


def _make_cli(ctx: click.Context) -> BuildpackCLI:
    try:
        return BuildpackCLI(ctx.obj["state_file"])
    except ValueError as e:
        raise click.ClickException(str(e))


def _echo_results(results: List[Tuple[str, ReconcileResult]]) -> None:
    rows = [
        [
            key,
            result.action.value if result.success else "failed",
            "✓" if result.success else "✗",
            result.message,
        ]
        for key, result in results
    ]
    click.echo(
        tabulate(rows, headers=["Key", "Action", "OK", "Message"], tablefmt="grid")
    )


@click.group()
@click.option(
    "--state-file",
    "-s",
    default=None,
    help="State file path (default: BPCTL_STATE_FILE or bpctl.state.json)",
)
@click.option("--log-level", default=None, help="Logging level (default: LOG_LEVEL)")
@click.pass_context
def cli(ctx, state_file, log_level):
    """bpctl - declarative buildpack management for Cloud Foundry"""
    cli_config = CLIConfig.from_env()
    logging.basicConfig(
        level=(log_level or cli_config.log_level).upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["state_file"] = state_file or cli_config.state_file


@cli.command()
@click.argument("filename", type=click.Path(exists=True))
@click.option(
    "--prune/--no-prune",
    default=True,
    help="Delete recorded buildpacks that are no longer in the manifest",
)
@click.pass_context
def apply(ctx, filename, prune):
    """Create, adopt or update the buildpacks in a manifest"""
    specs = load_manifest(filename)
    runner = _make_cli(ctx)

    results = asyncio.run(runner.apply(specs, prune=prune))
    _echo_results(results)

    if not all(result.success for _, result in results):
        ctx.exit(1)


@cli.command()
@click.argument("filename", type=click.Path(exists=True))
@click.option(
    "--prune/--no-prune",
    default=True,
    help="Show deletion of recorded buildpacks that are no longer in the manifest",
)
@click.pass_context
def plan(ctx, filename, prune):
    """Show what apply would change, without changing anything"""
    specs = load_manifest(filename)
    runner = _make_cli(ctx)

    async def compute():
        return [
            await runner.reconciler.plan(spec, runner.state_for(spec))
            for spec in specs
        ]

    try:
        plans = asyncio.run(compute())
    except CloudFoundryError as e:
        raise click.ClickException(str(e))

    rows = []
    if prune:
        for key in runner.orphaned(specs):
            state = runner.states[key]
            rows.append(
                [key, state.attributes.get("name", key), "delete", state.id, "-", "no"]
            )
    rows.extend(
        [
            spec.state_key,
            p.name,
            p.action,
            p.guid or "-",
            ", ".join(p.diff.fields_changed) or "-",
            "yes" if p.diff.artifact_changed else "no",
        ]
        for spec, p in zip(specs, plans)
    )
    click.echo(
        tabulate(
            rows,
            headers=["Key", "Name", "Action", "GUID", "Fields", "Upload"],
            tablefmt="grid",
        )
    )


@cli.command()
@click.argument("filename", type=click.Path(exists=True))
@click.confirmation_option(prompt="Are you sure you want to delete these buildpacks?")
@click.pass_context
def destroy(ctx, filename):
    """Delete the buildpacks in a manifest"""
    specs = load_manifest(filename)
    runner = _make_cli(ctx)

    results = asyncio.run(runner.destroy(specs))
    _echo_results(results)

    if not all(result.success for _, result in results):
        ctx.exit(1)


@cli.command()
@click.argument("key")
@click.option("--output", "-o", type=click.Choice(["json", "yaml"]), default="json")
@click.pass_context
def get(ctx, key, output):
    """Show the recorded state of a buildpack by its manifest key"""
    states = load_state(ctx.obj["state_file"])
    if key not in states:
        raise click.ClickException(f"No state recorded for buildpack {key}")

    data: Dict[str, Any] = states[key].to_dict()
    if output == "yaml":
        click.echo(yaml.dump(data, default_flow_style=False))
    else:
        click.echo(json.dumps(data, indent=2))


@cli.command(name="list")
@click.option("--output", "-o", type=click.Choice(["table", "json"]), default="table")
@click.pass_context
def list_buildpacks(ctx, output):
    """List the buildpacks on the Cloud Controller"""
    runner = _make_cli(ctx)

    try:
        buildpacks = asyncio.run(runner.cache.get_buildpacks(runner.client))
    except CloudFoundryError as e:
        raise click.ClickException(str(e))

    if output == "json":
        click.echo(json.dumps([asdict(bp) for bp in buildpacks], indent=2))
        return

    rows = [
        [bp.position, bp.name, bp.enabled, bp.locked, bp.filename or "-", bp.guid]
        for bp in sorted(buildpacks, key=lambda bp: (bp.position or 0, bp.name))
    ]
    click.echo(
        tabulate(
            rows,
            headers=["Position", "Name", "Enabled", "Locked", "Filename", "GUID"],
            tablefmt="grid",
        )
    )


if __name__ == "__main__":
    cli()
