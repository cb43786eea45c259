# handler.py — routes Slack mentions to commands and interactions to actions
import logging
from typing import Any, Dict, List, Optional

from slack_sdk import WebClient

from config import CONFIG
from slack_bot.actions import (
    OPEN_PREFLIGHT_CONFIG_ACTION_ID, PREFLIGHT_MODAL_CALLBACK_ID, open_preflight_config,
    preflight_config_modal,
)
from slack_bot.base import SlackContext, get_message_from_event, get_thread_timestamp
from slack_bot.commands.backfill_llmo import BackfillLlmoCommand
from slack_bot.commands.base import BaseCommand, CommandContext
from slack_bot.commands.get_site import GetSiteCommand
from slack_bot.commands.get_site_audits import GetSiteAuditsCommand
from slack_bot.commands.get_sites import GetSitesCommand
from slack_bot.commands.help import HelpCommand
from slack_bot.commands.llmo_onboard import LlmoOnboardCommand
from slack_bot.commands.run_all_audits import RunAllAuditsCommand
from slack_bot.commands.run_audit import RunAuditCommand
from slack_bot.commands.run_scrape import RunScrapeCommand
from slack_bot.commands.run_traffic_analysis_backfill import RunTrafficAnalysisBackfillCommand
from slack_bot.commands.toggle_site_audit import ToggleSiteAuditCommand
from slack_bot.commands.toggle_site_import import ToggleSiteImportCommand

logger = logging.getLogger(__name__)

COMMAND_CLASSES = (
    GetSiteCommand,
    GetSiteAuditsCommand,
    GetSitesCommand,
    RunAuditCommand,
    RunAllAuditsCommand,
    RunScrapeCommand,
    RunTrafficAnalysisBackfillCommand,
    BackfillLlmoCommand,
    LlmoOnboardCommand,
    ToggleSiteAuditCommand,
    ToggleSiteImportCommand,
)

BLOCK_ACTIONS = {
    OPEN_PREFLIGHT_CONFIG_ACTION_ID: open_preflight_config,
}
VIEW_SUBMISSIONS = {
    PREFLIGHT_MODAL_CALLBACK_ID: preflight_config_modal,
}


class SlackHandler:
    """One instance per request; holds the Web API client and the command list."""

    def __init__(self, context: Optional[CommandContext] = None, client: Optional[WebClient] = None):
        self.context = context or CommandContext()
        self.client = client or WebClient(token=CONFIG.slack.bot_token)
        self.commands: List[BaseCommand] = [cls(self.context) for cls in COMMAND_CLASSES]
        self.help = HelpCommand(self.context, self.commands)
        self.commands.append(self.help)

    def find_command(self, message: str) -> Optional[BaseCommand]:
        return next((c for c in self.commands if c.accepts(message)), None)

    def handle_event(self, event: Dict[str, Any]) -> None:
        if event.get('type') != 'app_mention':
            logger.debug(f"Ignoring Slack event of type {event.get('type')}")
            return

        slack_context = SlackContext(
            client=self.client,
            channel_id=event.get('channel'),
            thread_ts=get_thread_timestamp(event),
            user=event.get('user'),
            files=event.get('files'),
        )
        message = get_message_from_event(event)
        command = self.find_command(message)
        if command is None:
            self.help.handle_execution([], slack_context)
            return
        logger.info(f"Slack command '{command.id}' requested by {event.get('user')}")
        command.execute(message, slack_context)

    def handle_interaction(self, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Returns the acknowledgement body for Slack, or None for an empty 200."""
        payload_type = payload.get('type')
        if payload_type == 'block_actions':
            for action in payload.get('actions') or []:
                handler = BLOCK_ACTIONS.get(action.get('action_id'))
                if handler:
                    return handler(payload, self.client, self.context.data_access)
            logger.warning(f"Unhandled Slack block action: {payload.get('actions')}")
            return None

        if payload_type == 'view_submission':
            callback_id = (payload.get('view') or {}).get('callback_id')
            handler = VIEW_SUBMISSIONS.get(callback_id)
            if handler:
                return handler(payload, self.client, self.context.data_access)
            logger.warning(f"Unhandled Slack view submission: {callback_id}")
            return None

        logger.warning(f"Unhandled Slack interaction type: {payload_type}")
        return None
