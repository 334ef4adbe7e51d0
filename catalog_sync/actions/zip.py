"""roadiehq:utils:zip: zip the scaffolder workspace."""

from __future__ import annotations

import asyncio
import zipfile
from pathlib import Path

from catalog_sync.scaffolder import ActionContext, TemplateAction, create_template_action

ACTION_ID = "roadiehq:utils:zip"

INPUT_SCHEMA = {
    "type": "object",
    "required": ["path"],
    "properties": {
        "path": {
            "title": "Path",
            "description": "Relative path you would like to zip",
            "type": "string",
        },
    },
}

OUTPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "path": {
            "title": "Zip Path",
            "type": "string",
        },
    },
}


def resolve_output_path(workspace: Path, relative: object) -> Path:
    """Absolute archive path for ``relative``, which must stay inside ``workspace``."""
    if not isinstance(relative, str) or not relative.strip():
        raise ValueError("Input 'path' must be a non-empty string")
    if Path(relative).is_absolute():
        raise ValueError(f"Input 'path' must be relative, got {relative!r}")

    root = workspace.resolve()
    target = (root / relative).resolve()
    if target == root or root not in target.parents:
        raise ValueError(f"Input 'path' {relative!r} points outside the workspace")
    return target


def collect_files(workspace: Path, exclude: Path) -> list[Path]:
    """Regular files under ``workspace``, sorted, without ``exclude``."""
    return sorted(
        path
        for path in workspace.rglob("*")
        if path.is_file() and path.resolve() != exclude
    )


def write_zip(workspace: Path, files: list[Path], target: Path) -> list[str]:
    target.parent.mkdir(parents=True, exist_ok=True)
    names: list[str] = []
    with zipfile.ZipFile(target, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for path in files:
            arcname = path.relative_to(workspace).as_posix()
            zf.write(path, arcname=arcname)
            names.append(arcname)
    return names


async def _handler(ctx: ActionContext) -> None:
    workspace = ctx.workspace_path
    ctx.logger.info("Zipping workspace %s", workspace, extra={"action": ACTION_ID})
    if not workspace.is_dir():
        raise NotADirectoryError(f"Workspace {workspace} is not a directory")

    target = resolve_output_path(workspace, ctx.input.get("path"))
    files = await asyncio.to_thread(collect_files, workspace, target)
    names = await asyncio.to_thread(write_zip, workspace, files, target)
    ctx.logger.info("Zip entries: %s", names, extra={"action": ACTION_ID})

    ctx.logger.info("Wrote %s", target, extra={"action": ACTION_ID})
    ctx.output("path", str(target))


def create_zip_action() -> TemplateAction:
    return create_template_action(
        id=ACTION_ID,
        description="Zips the content of the path",
        handler=_handler,
        input_schema=INPUT_SCHEMA,
        output_schema=OUTPUT_SCHEMA,
    )
