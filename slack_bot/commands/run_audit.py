import json
import logging
import re

from job_triggers import trigger_audit_for_site
from slack_bot.base import (
    extract_url_from_slack_input, parse_csv, post_error_message, post_site_not_found_message,
)
from slack_bot.commands.base import BaseCommand
from utils.validation import is_valid_url

logger = logging.getLogger(__name__)

LHS_MOBILE = 'lhs-mobile'
ALL_AUDITS = (
    'apex',
    'cwv',
    'lhs-mobile',
    'lhs-desktop',
    '404',
    'sitemap',
    'canonical',
    'broken-backlinks',
    'broken-internal-links',
    'llm-error-pages',
    'experimentation-opportunities',
    'meta-tags',
    'structured-data',
    'forms-opportunities',
    'alt-text',
    'geo-brand-presence',
)

_SLACK_LINK_RE = re.compile(r'^<https?://[^|>]+\|[^>]+>$')


def parse_keyword_arguments(args):
    """Split `key:value` words from positional ones; Slack `<url|label>` links stay positional."""
    keywords = {}
    positional = []
    for arg in args:
        if arg and ':' in arg and not _SLACK_LINK_RE.match(arg):
            key, _, value = arg.partition(':')
            keywords[key] = value.strip()
        else:
            positional.append(arg)
    return keywords, positional


class RunAuditCommand(BaseCommand):
    id = 'run-audit'
    name = 'Run Audit'
    description = ('Run audit for a previously added site. Supports both positional and keyword arguments. '
                   'Runs lhs-mobile by default if no audit type is specified. Use `audit:all` to run all audits.')
    phrases = ('run audit',)
    usage_text = 'run audit {site} [auditType] [auditData] OR {site} audit:{auditType} [key:value ...]'

    def run_audit_for_site(self, base_url, audit_type, audit_data, slack_context):
        say = slack_context.say
        try:
            site = self.data_access.sites.find_by_base_url(base_url)
            if not site:
                post_site_not_found_message(say, base_url)
                return
            configuration = self.data_access.configurations.find_latest()

            if audit_type == 'all':
                enabled = [a for a in ALL_AUDITS if configuration.is_handler_enabled_for_site(a, site)]
                if not enabled:
                    say(f":warning: No audits configured for site `{base_url}`")
                    return
                say(f":adobe-run: Triggering {audit_type} audit for {base_url}")
                for enabled_type in enabled:
                    try:
                        trigger_audit_for_site(self.sqs, site, enabled_type, slack_context)
                    except Exception as e:
                        logger.error(f"Error running audit {enabled_type} for site {base_url}: {e}")
                        post_error_message(say, e)
                return

            if not configuration.is_handler_enabled_for_site(audit_type, site):
                say(f":x: Will not audit site '{base_url}' because audits of type '{audit_type}' "
                    f"are disabled for this site.")
                return

            say(f":adobe-run: Triggering {audit_type} audit for {base_url}")
            trigger_audit_for_site(self.sqs, site, audit_type, slack_context, audit_data)
        except Exception as e:
            logger.error(f"Error running audit {audit_type} for site {base_url}: {e}", exc_info=True)
            post_error_message(say, e)

    def _run_for_csv(self, files, audit_type, audit_data, slack_context):
        say = slack_context.say
        if len(files) > 1:
            say(':warning: Please provide only one CSV file.')
            return
        file = files[0]
        if not (file.get('name') or '').endswith('.csv'):
            say(':warning: Please provide a CSV file.')
            return

        rows = parse_csv(file, slack_context.bot_token)
        say(f":adobe-run: Triggering {audit_type} audit for {len(rows)} sites.")
        for row in rows:
            csv_base_url = row[0]
            if is_valid_url(csv_base_url):
                self.run_audit_for_site(csv_base_url, audit_type, audit_data, slack_context)
            else:
                say(f":warning: Invalid URL found in CSV file: {csv_base_url}")

    def handle_execution(self, args, slack_context):
        say = slack_context.say
        try:
            keywords, positional = parse_keyword_arguments(args)

            if keywords:
                base_url_arg = positional[0] if positional else None
                audit_type_arg = keywords.pop('audit', None)
                audit_data_arg = json.dumps(keywords) if keywords else None
            else:
                padded = positional + [None] * 3
                base_url_arg, audit_type_arg, audit_data_arg = padded[:3]

            files = slack_context.files
            base_url = extract_url_from_slack_input(base_url_arg)
            has_valid_base_url = is_valid_url(base_url)

            if not has_valid_base_url and not files:
                say(self.usage())
                return
            if has_valid_base_url and files:
                say(':warning: Please provide either a baseURL or a CSV file with a list of site URLs.')
                return

            if files:
                # with a CSV attached the positional words shift left by one
                self._run_for_csv(files, base_url_arg or LHS_MOBILE, audit_type_arg, slack_context)
            else:
                self.run_audit_for_site(base_url, audit_type_arg or LHS_MOBILE, audit_data_arg, slack_context)
        except Exception as e:
            logger.error(f"run audit failed: {e}", exc_info=True)
            post_error_message(say, e)
