"""
Task runner.

Purpose
Run one provision or tear_down operation as a task:
- Read parameters, either a JSON object on stdin or command line flags
- Validate the caller contract before anything touches the network
- Wire settings, token, ABS client and inventory plugin into the engine
- Print exactly one JSON object on stdout and exit 0 or 1

stdout belongs to the JSON contract, the calling tool parses it.
Logs go to stderr.

Caller contract
provision needs platform and must not get node_name.
tear_down needs node_name and must not get platform.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping, NoReturn, Sequence, TextIO

from abs_provisioner.agent.engine import ProvisionEngine
from abs_provisioner.auth.fogfile import FogfileTokenProvider
from abs_provisioner.core.errors import ProvisionerError, ValidationError
from abs_provisioner.core.serialization import error_payload, to_json_safe_dict
from abs_provisioner.core.settings import ProvisionerSettings
from abs_provisioner.inventory.plugins.yaml_file import YamlInventoryPlugin
from abs_provisioner.pooling.client import AbsClient
from abs_provisioner.pooling.http import HttpClient, UrllibHttpClient
from abs_provisioner.pooling.request import normalize_resources

logger = logging.getLogger(__name__)

ERROR_KIND = "provision/abs_failure"
ACTIONS = ("provision", "tear_down")


@dataclass(frozen=True)
class TaskParams:
    """
    Validated task parameters.

    action
    provision or tear_down.

    platform
    Platform name, or mapping of platform name to count. Provision only.

    node_name
    Hostname to tear down. Tear down only.

    inventory
    Directory holding spec/fixtures/litmus_inventory.yaml. Defaults to cwd.

    vars
    YAML text attached to provisioned nodes.
    """

    action: str
    platform: Any = None
    node_name: str | None = None
    inventory: str | None = None
    vars: Any = None


def validate_params(params: Mapping[str, Any]) -> TaskParams:
    """Check the caller contract. Raises ValidationError before any network call."""
    action = params.get("action")
    node_name = params.get("node_name")
    platform = params.get("platform")

    if action == "tear_down" and node_name is None:
        raise ValidationError("specify a node_name when tearing down")
    if action == "provision" and platform is None:
        raise ValidationError("specify a platform when provisioning")

    if (node_name is None) == (platform is None):
        if action == "tear_down":
            raise ValidationError("specify only a node_name, not platform, when tearing down")
        if action == "provision":
            raise ValidationError("specify only a platform, not node_name, when provisioning")
        raise ValidationError("specify only one of: node_name, platform")

    if action not in ACTIONS:
        raise ValidationError(f"unknown action {action!r}, expected one of: {', '.join(ACTIONS)}")

    if node_name is not None and not isinstance(node_name, str):
        raise ValidationError("node_name must be a string")
    if platform is not None:
        normalize_resources(platform)

    inventory = params.get("inventory")
    return TaskParams(
        action=str(action),
        platform=platform,
        node_name=node_name,
        inventory=None if inventory is None else str(inventory),
        vars=params.get("vars"),
    )


def build_engine(
    task: TaskParams,
    settings: ProvisionerSettings,
    http: HttpClient | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> ProvisionEngine:
    """Compose the engine for one task."""
    token = FogfileTokenProvider(path=settings.fog_path).token_for("abs")
    client = AbsClient(
        host=settings.abs_host,
        token=token,
        http=http or UrllibHttpClient(),
        sleep=sleep,
    )
    return ProvisionEngine(
        settings=settings,
        client=client,
        inventory=YamlInventoryPlugin.for_location(task.inventory),
    )


def run_task(
    params: Mapping[str, Any],
    settings: ProvisionerSettings,
    http: HttpClient | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> dict[str, Any]:
    """Validate params, run the action and return the JSON result object."""
    task = validate_params(params)
    engine = build_engine(task, settings, http=http, sleep=sleep)

    if task.action == "provision":
        return to_json_safe_dict(engine.provision(task.platform, task.vars))
    return to_json_safe_dict(engine.tear_down(str(task.node_name)))


def _parse_platform_flags(values: list[str] | None) -> Any:
    """
    --platform centos-7-x86_64          -> "centos-7-x86_64"
    --platform centos-7=2 --platform win-2019=1 -> {"centos-7": 2, "win-2019": 1}
    """
    if not values:
        return None
    if len(values) == 1 and "=" not in values[0]:
        return values[0]

    resources: dict[str, int] = {}
    for item in values:
        name, sep, count = item.partition("=")
        if not sep:
            count = "1"
        try:
            resources[name] = resources.get(name, 0) + int(count)
        except ValueError as exc:
            raise ValidationError(f"invalid platform count in {item!r}") from exc
    return resources


class TaskArgumentParser(argparse.ArgumentParser):
    """Raises ValidationError on bad flags instead of exiting, so the caller still gets JSON."""

    def error(self, message: str) -> NoReturn:
        raise ValidationError(f"invalid arguments: {message}")


def build_parser() -> argparse.ArgumentParser:
    parser = TaskArgumentParser(
        prog="abs-provision",
        description="Provision or tear down test machines through ABS. "
        "Without an action, task parameters are read as JSON from stdin.",
    )
    parser.add_argument("action", nargs="?", choices=ACTIONS)
    parser.add_argument("--platform", action="append", help="platform name, or name=count (repeatable)")
    parser.add_argument("--node-name", dest="node_name", help="hostname to tear down")
    parser.add_argument("--inventory", help="directory holding spec/fixtures/litmus_inventory.yaml")
    parser.add_argument("--vars", help="YAML mapping attached to provisioned nodes")
    parser.add_argument("--verbose", "-v", action="store_true", help="enable debug logging")
    return parser


def _read_params(args: argparse.Namespace, stdin: TextIO) -> dict[str, Any]:
    if args.action is not None:
        params: dict[str, Any] = {
            "action": args.action,
            "platform": _parse_platform_flags(args.platform),
            "node_name": args.node_name,
            "inventory": args.inventory,
            "vars": args.vars,
        }
        return params

    raw = stdin.read()
    try:
        params = json.loads(raw) if raw.strip() else {}
    except ValueError as exc:
        raise ValidationError(f"task parameters on stdin are not valid JSON: {exc}") from exc
    if not isinstance(params, dict):
        raise ValidationError("task parameters on stdin must be a JSON object")
    return params


def main(
    argv: Sequence[str] | None = None,
    stdin: TextIO | None = None,
    stdout: TextIO | None = None,
    env: Mapping[str, str] | None = None,
    http: HttpClient | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Task entry point. Returns the process exit status."""
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout

    try:
        args = build_parser().parse_args(argv)
        settings = ProvisionerSettings.from_env(env)
        logging.basicConfig(
            level=logging.DEBUG if (args.verbose or settings.debug) else logging.INFO,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            stream=sys.stderr,
        )
        params = _read_params(args, stdin)
        result = run_task(params, settings, http=http, sleep=sleep)
    except ProvisionerError as exc:
        logger.error("%s: %s", exc.kind, exc)
        stdout.write(json.dumps(error_payload(ERROR_KIND, str(exc), {"type": exc.kind})) + "\n")
        return 1
    except Exception as exc:
        logger.exception("unexpected failure")
        stdout.write(json.dumps(error_payload(ERROR_KIND, str(exc), {"type": type(exc).__name__})) + "\n")
        return 1

    stdout.write(json.dumps(result) + "\n")
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
