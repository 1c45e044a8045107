"""Command executor: one invocation from raw input to CommandResult.

Stages run in order and stop at the first failure:

    sanitize -> rate limit -> resolve -> enabled -> permission -> channel
    -> parse -> dispatch by action type

Every stage raises a SlashwireError subclass; ``execute()`` is the single
boundary that turns those (and any unexpected exception) into a failed
CommandResult. The webhook call is the only suspension point.

Key classes:
    CommandExecutor: Owns the handler table, rate limiter and webhook client.
"""

import json
import time
from dataclasses import replace
from typing import TYPE_CHECKING, Awaitable, Callable, Dict, Optional

import structlog

from ..config import get_config
from ..exceptions import (
    AuthorizationError,
    CommandExecutionError,
    CommandParseError,
    ResolutionError,
    SlashwireError,
    UnsupportedActionError,
)
from ..models import (
    ActionType,
    CommandContext,
    CommandDefinition,
    CommandResponse,
    CommandResult,
    ErrorKind,
    ParsedCommand,
    ResponseType,
    SideEffect,
    SideEffectType,
)
from ..parsing import bind_arguments, split_invocation, tokenize
from ..permissions import RoleOracle, can_use_command_in_channel, can_user_use_command, has_role_or_higher
from ..security import RateLimiter, sanitize_input
from ..webhook import WebhookClient
from .base import HandlerTable
from .handlers import build_handler_table
from .templates import build_bindings, get_nested_value, interpolate, render_payload

if TYPE_CHECKING:
    from ..config import Config
    from .registry import CommandRegistry

logger = structlog.get_logger("slashwire.executor")

ActionRunner = Callable[[CommandDefinition, CommandContext, ParsedCommand], Awaitable[CommandResult]]

WEBHOOK_DEFAULT_MESSAGE = "Webhook executed successfully"
RATE_LIMITED_MESSAGE = "You're sending commands too quickly. Please wait a moment."

# Most specific first; anything else is an execution failure
_ERROR_KINDS = (
    (ResolutionError, ErrorKind.RESOLUTION),
    (AuthorizationError, ErrorKind.AUTHORIZATION),
    (CommandParseError, ErrorKind.PARSE),
    (UnsupportedActionError, ErrorKind.UNSUPPORTED),
)


def error_kind_for(exc: BaseException) -> ErrorKind:
    for exc_type, kind in _ERROR_KINDS:
        if isinstance(exc, exc_type):
            return kind
    return ErrorKind.EXECUTION


class CommandExecutor:
    """Runs slash commands against a registry.

    Args:
        registry: Source of command definitions.
        role_oracle: ``(actual, required) -> bool`` role comparison.
        config: Limits and webhook defaults. Defaults to the registry's
            config, then the global config.
        webhook: Client for ``webhook`` actions.
        handlers: Handler table for ``builtin`` actions. Defaults to every
            built-in handler group.
        rate_limiter: Per-user limiter. Defaults to one built from config
            when rate limiting is enabled.
    """

    def __init__(
        self,
        registry: "CommandRegistry",
        *,
        role_oracle: RoleOracle = has_role_or_higher,
        config: Optional["Config"] = None,
        webhook: Optional[WebhookClient] = None,
        handlers: Optional[HandlerTable] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        self.registry = registry
        self.role_oracle = role_oracle
        self.config = config or registry.config or get_config()
        self.webhook = webhook or WebhookClient(self.config)
        self.handlers = handlers or build_handler_table(registry)
        if rate_limiter is None and self.config.rate_limit_enabled:
            rate_limiter = RateLimiter.from_config(self.config)
        self.rate_limiter = rate_limiter

        self._actions: Dict[ActionType, ActionRunner] = {
            ActionType.MESSAGE: self._run_message,
            ActionType.STATUS: self._run_status,
            ActionType.NAVIGATE: self._run_navigate,
            ActionType.MODAL: self._run_modal,
            ActionType.API: self._run_api,
            ActionType.WEBHOOK: self._run_webhook,
            ActionType.WORKFLOW: self._run_workflow,
            ActionType.BUILTIN: self._run_builtin,
            ActionType.CUSTOM: self._run_custom,
        }

    @property
    def supported_actions(self) -> frozenset:
        return frozenset(self._actions)

    async def close(self):
        await self.webhook.close()

    async def execute(self, text: str, context: CommandContext) -> CommandResult:
        """Run one slash command. Never raises.

        Args:
            text: Raw input line, starting with ``/``.
            context: Who is invoking the command, and where.

        Returns:
            CommandResult with ``duration_ms`` set. Failures carry the
            user-facing message in ``error`` and the failing stage in
            ``error_kind``.
        """
        started = time.perf_counter()
        try:
            result = await self._run(text, context)
        except SlashwireError as e:
            kind = error_kind_for(e)
            logger.info(
                "command_failed",
                user_id=context.user_id,
                error_kind=kind.value,
                error=e.message,
            )
            result = CommandResult.failure(e.message, kind)
        except Exception as e:
            logger.error(
                "command_crashed",
                user_id=context.user_id,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            result = CommandResult.failure(
                str(e) or "An error occurred while executing the command",
                ErrorKind.EXECUTION,
            )
        result.duration_ms = (time.perf_counter() - started) * 1000
        return result

    async def _run(self, text: str, context: CommandContext) -> CommandResult:
        text = sanitize_input(text, self.config.max_input_length).strip()

        split = split_invocation(text)
        if split is None:
            raise ResolutionError("Invalid command format")
        trigger, args_text = split

        if self.rate_limiter is not None and not await self.rate_limiter.check_async(context.user_id):
            raise AuthorizationError(RATE_LIMITED_MESSAGE, user_id=context.user_id)

        command = self.registry.resolve(trigger)
        if command is None:
            raise ResolutionError(
                f"Unknown command: /{trigger}. Type /help for a list of commands.",
                trigger=trigger,
            )
        if not command.is_enabled:
            raise ResolutionError(f"Command /{trigger} is currently disabled.", trigger=trigger)

        logger.debug("command_resolved", trigger=trigger, command_id=command.id)

        check = can_user_use_command(command, context.role, context.user_id, self.role_oracle)
        if not check.allowed:
            logger.info("permission_denied", trigger=trigger, user_id=context.user_id, reason=check.reason)
            raise AuthorizationError(check.reason or "Permission denied", trigger=trigger)

        check = can_use_command_in_channel(
            command, context.channel_id, context.channel_type, context.in_thread
        )
        if not check.allowed:
            logger.info("channel_denied", trigger=trigger, channel_id=context.channel_id, reason=check.reason)
            raise AuthorizationError(check.reason or "Command not available here", trigger=trigger)

        parsed = bind_arguments(
            command,
            tokenize(args_text, command.short_flags()),
            now=context.timestamp,
        )
        if not parsed.is_valid:
            messages = "\n".join(error.message for error in parsed.errors)
            usage = command.get_usage()
            raise CommandParseError(
                f"Invalid arguments:\n{messages}\n\nUsage: {usage}",
                errors=parsed.errors,
                usage=usage,
            )

        invocation = replace(context, raw_input=args_text)
        result = await self._actions[command.action_type](command, invocation, parsed)
        logger.info(
            "command_executed",
            trigger=command.trigger,
            action_type=command.action_type.value,
            user_id=context.user_id,
            side_effects=len(result.side_effects),
        )
        return result

    # --- Action runners ---

    @staticmethod
    def _templated_response(
        command: CommandDefinition,
        bindings: Dict,
        default: Optional[str] = None,
    ) -> Optional[CommandResponse]:
        """Response from the command's template, else ``default`` as a notification."""
        config = command.response_config
        if config.template:
            return CommandResponse(
                config.type,
                interpolate(config.template, bindings),
                ephemeral=config.ephemeral,
            )
        if default is None:
            return None
        return CommandResponse(ResponseType.NOTIFICATION, default)

    @staticmethod
    def _config_of(command: CommandDefinition, action_type: ActionType):
        action = command.action
        if action is None or action.type != action_type.value:
            raise CommandExecutionError(
                f"No {action_type.value} configuration for /{command.trigger}",
                trigger=command.trigger,
            )
        return action

    async def _run_message(
        self, command: CommandDefinition, context: CommandContext, parsed: ParsedCommand
    ) -> CommandResult:
        action = command.action
        template = getattr(action, "message", None) or command.response_config.template
        if not template:
            raise CommandExecutionError(
                f"No message template configured for /{command.trigger}",
                trigger=command.trigger,
            )
        config = command.response_config
        content = interpolate(template, build_bindings(context, parsed))
        return CommandResult(
            success=True,
            response=CommandResponse(config.type, content, ephemeral=config.ephemeral),
        )

    async def _run_status(
        self, command: CommandDefinition, context: CommandContext, parsed: ParsedCommand
    ) -> CommandResult:
        action = self._config_of(command, ActionType.STATUS)
        bindings = build_bindings(context, parsed)
        text = interpolate(action.text or "", bindings)
        effect = SideEffect(SideEffectType.UPDATE_STATUS, {
            "user_id": context.user_id,
            "text": text,
            "emoji": interpolate(action.emoji, bindings) if action.emoji else None,
            "expiry": action.expiry,
        })
        return CommandResult(
            success=True,
            response=self._templated_response(command, bindings, f"Status set to: {text}"),
            side_effects=[effect],
        )

    async def _run_navigate(
        self, command: CommandDefinition, context: CommandContext, parsed: ParsedCommand
    ) -> CommandResult:
        action = self._config_of(command, ActionType.NAVIGATE)
        if not action.url:
            raise CommandExecutionError(f"No navigation URL configured for /{command.trigger}")
        bindings = build_bindings(context, parsed)
        effect = SideEffect(SideEffectType.NAVIGATE, {
            "url": interpolate(action.url, bindings),
            "new_tab": action.new_tab,
        })
        return CommandResult(
            success=True,
            response=self._templated_response(command, bindings),
            side_effects=[effect],
        )

    async def _run_modal(
        self, command: CommandDefinition, context: CommandContext, parsed: ParsedCommand
    ) -> CommandResult:
        action = self._config_of(command, ActionType.MODAL)
        if not action.component:
            raise CommandExecutionError(f"No modal component configured for /{command.trigger}")
        bindings = build_bindings(context, parsed)
        props = render_payload(action.props, bindings)
        props["context"] = context.to_payload()
        props["args"] = parsed.arguments()
        effect = SideEffect(SideEffectType.OPEN_MODAL, {"component": action.component, "props": props})
        return CommandResult(
            success=True,
            response=self._templated_response(command, bindings),
            side_effects=[effect],
        )

    async def _run_api(
        self, command: CommandDefinition, context: CommandContext, parsed: ParsedCommand
    ) -> CommandResult:
        action = self._config_of(command, ActionType.API)
        if not action.endpoint:
            raise CommandExecutionError(f"No API endpoint configured for /{command.trigger}")
        bindings = build_bindings(context, parsed)
        body = render_payload(action.body, bindings)
        body["context"] = context.to_payload()
        body["args"] = parsed.arguments()
        effect = SideEffect(SideEffectType.API, {
            "endpoint": interpolate(action.endpoint, bindings),
            "method": action.method.upper(),
            "body": body,
        })
        return CommandResult(
            success=True,
            response=self._templated_response(command, bindings),
            side_effects=[effect],
        )

    async def _run_webhook(
        self, command: CommandDefinition, context: CommandContext, parsed: ParsedCommand
    ) -> CommandResult:
        action = self._config_of(command, ActionType.WEBHOOK)
        if not action.url:
            raise CommandExecutionError(f"No webhook URL configured for /{command.trigger}")
        bindings = build_bindings(context, parsed)
        url = interpolate(action.url, bindings)

        if action.body_template:
            body = interpolate(action.body_template, bindings)
        else:
            body = json.dumps({
                "command": command.trigger,
                "context": context.to_payload(),
                "args": parsed.arguments(),
            }, default=str)

        response = await self.webhook.call(action, body, url=url)

        message = None
        if action.message_path:
            found = get_nested_value(response.data, action.message_path)
            if found is not None:
                message = str(found)
        config = command.response_config
        if message is None and config.template:
            message = interpolate(config.template, bindings)

        effect = SideEffect(SideEffectType.WEBHOOK, {
            "url": url,
            "method": action.method.upper(),
            "status": response.status,
        })
        return CommandResult(
            success=True,
            response=CommandResponse(
                config.type,
                message or WEBHOOK_DEFAULT_MESSAGE,
                ephemeral=config.ephemeral,
            ),
            side_effects=[effect],
            data=response.data,
        )

    async def _run_workflow(
        self, command: CommandDefinition, context: CommandContext, parsed: ParsedCommand
    ) -> CommandResult:
        action = self._config_of(command, ActionType.WORKFLOW)
        if not action.workflow_id:
            raise CommandExecutionError(f"No workflow configured for /{command.trigger}")
        bindings = build_bindings(context, parsed)
        # Mapping values name an argument or context field
        workflow_input = {
            key: bindings.get(source.strip("{} "))
            for key, source in action.input_mapping.items()
        }
        effect = SideEffect(SideEffectType.WORKFLOW, {
            "workflow_id": action.workflow_id,
            "input": workflow_input,
            "wait_for_completion": action.wait_for_completion,
        })
        return CommandResult(
            success=True,
            response=self._templated_response(command, bindings, "Workflow triggered"),
            side_effects=[effect],
        )

    async def _run_builtin(
        self, command: CommandDefinition, context: CommandContext, parsed: ParsedCommand
    ) -> CommandResult:
        name = getattr(command.action, "handler", None) or command.trigger
        handler = self.handlers.get(name)
        if handler is None:
            raise CommandExecutionError(
                f"No handler found for built-in command: /{command.trigger}",
                handler=name,
            )
        return handler(context, parsed)

    async def _run_custom(
        self, command: CommandDefinition, context: CommandContext, parsed: ParsedCommand
    ) -> CommandResult:
        raise UnsupportedActionError(
            "Custom action type is not implemented",
            action_type=ActionType.CUSTOM.value,
            trigger=command.trigger,
        )
