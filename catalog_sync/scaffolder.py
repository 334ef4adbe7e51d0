"""Scaffolder template actions: declaration, execution context, registry."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger("catalog_sync.scaffolder")


@dataclass
class ActionContext:
    """What a running action sees: its workspace, input and output sink."""

    workspace_path: Path
    input: dict[str, Any]
    logger: logging.Logger = logger
    outputs: dict[str, Any] = field(default_factory=dict)

    def output(self, name: str, value: Any) -> None:
        self.outputs[name] = value


ActionHandler = Callable[[ActionContext], Awaitable[None]]


@dataclass(frozen=True)
class TemplateAction:
    id: str
    description: str
    handler: ActionHandler
    schema: dict[str, Any] = field(default_factory=dict)

    async def execute(
        self,
        workspace_path: Path,
        input: dict[str, Any],
        action_logger: Optional[logging.Logger] = None,
    ) -> dict[str, Any]:
        """Run the handler in a fresh context and return its outputs."""
        ctx = ActionContext(
            workspace_path=Path(workspace_path),
            input=dict(input),
            logger=action_logger or logger,
        )
        ctx.logger.info("Running action %s", self.id, extra={"action": self.id})
        await self.handler(ctx)
        return ctx.outputs


def create_template_action(
    id: str,
    handler: ActionHandler,
    description: str = "",
    input_schema: Optional[dict[str, Any]] = None,
    output_schema: Optional[dict[str, Any]] = None,
) -> TemplateAction:
    schema: dict[str, Any] = {}
    if input_schema is not None:
        schema["input"] = input_schema
    if output_schema is not None:
        schema["output"] = output_schema
    return TemplateAction(id=id, description=description, handler=handler, schema=schema)


def builtin_actions() -> dict[str, TemplateAction]:
    """Registry mapping action ids to actions."""
    from catalog_sync.actions.zip import create_zip_action

    actions = [create_zip_action()]
    return {action.id: action for action in actions}
