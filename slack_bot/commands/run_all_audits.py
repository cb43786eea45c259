import logging

from job_triggers import trigger_audit_for_site
from slack_bot.base import (
    extract_url_from_slack_input, parse_csv, post_error_message, post_site_not_found_message,
)
from slack_bot.commands.base import BaseCommand
from utils.validation import is_valid_url

logger = logging.getLogger(__name__)


class RunAllAuditsCommand(BaseCommand):
    id = 'run-all-audits'
    name = 'Run all Audits'
    description = 'Run all configured audits for a specified baseURL or a list of baseURLs from a CSV file.'
    phrases = ('run all audits',)
    usage_text = 'run all audits {baseURL|CSV-File}'

    def run_all_audits_for_site(self, base_url, slack_context):
        say = slack_context.say
        try:
            site = self.data_access.sites.find_by_base_url(base_url)
            if not site:
                post_site_not_found_message(say, base_url)
                return
            configuration = self.data_access.configurations.find_latest()
            enabled = configuration.get_enabled_audits_for_site(site)
            if not enabled:
                say(f":warning: No audits configured for site `{base_url}`")
                return
            for audit_type in enabled:
                try:
                    trigger_audit_for_site(self.sqs, site, audit_type, slack_context)
                except Exception as e:
                    logger.error(f"Error running audit {audit_type} for site {base_url}: {e}")
                    post_error_message(say, e)
        except Exception as e:
            logger.error(f"Error running all audits for site {base_url}: {e}", exc_info=True)
            post_error_message(say, e)

    def handle_execution(self, args, slack_context):
        say = slack_context.say
        files = slack_context.files
        base_url = extract_url_from_slack_input(args[0] if args else None)

        if not base_url and not files:
            say(self.usage())
            return
        if base_url and files:
            say(':warning: Please provide either a baseURL or a CSV file with a list of site URLs.')
            return

        if files:
            if len(files) > 1:
                say(':warning: Please provide only one CSV file.')
                return
            if not (files[0].get('name') or '').endswith('.csv'):
                say(':warning: Please provide a CSV file.')
                return
            try:
                rows = parse_csv(files[0], slack_context.bot_token)
            except Exception as e:
                logger.error(f"run all audits CSV failed: {e}", exc_info=True)
                post_error_message(say, e)
                return
            for row in rows:
                if is_valid_url(row[0]):
                    self.run_all_audits_for_site(row[0], slack_context)
                else:
                    say(f":warning: Invalid URL found in CSV file: {row[0]}")
        else:
            self.run_all_audits_for_site(base_url, slack_context)

        say(':white_check_mark: All audits triggered successfully.')
