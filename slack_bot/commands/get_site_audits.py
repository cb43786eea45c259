import logging

from slack_bot.base import (
    extract_url_from_slack_input, post_error_message, post_site_not_found_message, send_message_blocks,
)
from slack_bot.commands.base import BaseCommand
from utils.validation import is_valid_url

logger = logging.getLogger(__name__)


def format_audit_status(enabled, disabled):
    sections = []
    if enabled:
        sections.append('*Enabled Audits:* :white_check_mark:\n' + ''.join(f"• {t}\n" for t in enabled))
    if disabled:
        sections.append('*Disabled Audits:* :x:\n' + ''.join(f"• {t}\n" for t in disabled))
    return '\n'.join(sections)


class GetSiteAuditsCommand(BaseCommand):
    id = 'get-site-audits'
    name = 'Get all audits for a site'
    description = 'Retrieves all audit types (enabled and disabled) for a site by a given base URL'
    phrases = ('get site-audits',)
    usage_text = 'get site-audits {baseURL}'

    def handle_execution(self, args, slack_context):
        say = slack_context.say
        try:
            base_url = extract_url_from_slack_input(args[0] if args else None)
            if not base_url:
                say(self.usage())
                return
            if not is_valid_url(base_url):
                say(':warning: Please provide a valid URL.')
                return

            site = self.data_access.sites.find_by_base_url(base_url)
            if not site:
                post_site_not_found_message(say, base_url)
                return

            configuration = self.data_access.configurations.find_latest()
            enabled = configuration.get_enabled_audits_for_site(site)
            disabled = configuration.get_disabled_audits_for_site(site)
            total = len(enabled) + len(disabled)
            if not total:
                say(':warning: No audit types are configured in the system.')
                return

            text = (f"*Site Audit Status for {site.base_url}*\n\n"
                    f":bar_chart: *Summary:* {len(enabled)} enabled, {len(disabled)} disabled "
                    f"({total} total audit types)\n\n"
                    f"{format_audit_status(enabled, disabled)}")
            send_message_blocks(say, [{'text': text}], options={'unfurl_links': False})
        except Exception as e:
            logger.error(f"get site-audits failed: {e}", exc_info=True)
            post_error_message(say, e)
