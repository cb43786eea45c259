import logging

from slack_bot.base import (
    BACKTICKS, CHARACTER_LIMIT, extract_url_from_slack_input, post_error_message,
    post_site_not_found_message, send_message_blocks,
)
from slack_bot.commands.base import BaseCommand
from slack_bot.format import (
    format_date, format_lighthouse_error, format_rows, format_score, print_site_details,
)

logger = logging.getLogger(__name__)

AUDIT_TABLE_HEADERS = ['Audited At (UTC)', 'Perf', 'SEO', 'A11y', 'Best Pr.', 'Live']


def format_audits(audits):
    """Audit history as a code-block table, cut to the Slack character limit."""
    if not audits:
        return 'No audit history available'

    rows = [AUDIT_TABLE_HEADERS]
    for audit in audits:
        if audit.is_error:
            rows.append([format_date(audit.audited_at), format_lighthouse_error(audit.runtime_error)])
            continue
        scores = audit.scores
        rows.append([
            format_date(audit.audited_at),
            format_score(scores.get('performance')),
            format_score(scores.get('seo')),
            format_score(scores.get('accessibility')),
            format_score(scores.get('best-practices')),
            'Yes' if audit.is_live else 'No',
        ])

    table = f"{BACKTICKS}\n" + "\n".join(format_rows(r) for r in rows) + f"\n{BACKTICKS}"
    if len(table) > CHARACTER_LIMIT:
        return f"{table[:CHARACTER_LIMIT - 3]}..."
    return table


class GetSiteCommand(BaseCommand):
    id = 'get-site-status'
    name = 'Get Site Status'
    description = 'Retrieves audit status for a site by a given base URL'
    phrases = ('get site', 'get baseURL')
    usage_text = 'get site or get baseURL {baseURL} [desktop|mobile];'

    def handle_execution(self, args, slack_context):
        say = slack_context.say
        try:
            base_url_input = args[0] if args else None
            psi_strategy = 'desktop' if len(args) > 1 and args[1] == 'desktop' else 'mobile'

            base_url = extract_url_from_slack_input(base_url_input)
            if not base_url:
                say(self.usage())
                return

            site = self.data_access.sites.find_by_base_url(base_url)
            if not site:
                post_site_not_found_message(say, base_url)
                return

            audit_type = f"lhs-{psi_strategy}"
            audits = self.data_access.audits.all_by_site_id(site.id, audit_type)
            configuration = self.data_access.configurations.find_latest()
            is_audit_enabled = configuration.is_handler_enabled_for_site(audit_type, site)
            latest_audit = audits[0] if audits else None

            text = (
                f"\n*Site Status for {site.base_url}*\n"
                f"{print_site_details(site, is_audit_enabled, psi_strategy, latest_audit)}\n\n"
                f"_Audits of *{psi_strategy}* strategy, sorted by date descending:_\n"
                f"{format_audits(audits)}\n"
            )
            send_message_blocks(say, [{'text': text}], [], {'unfurl_links': False})
        except Exception as e:
            logger.error(f"get site failed: {e}", exc_info=True)
            post_error_message(say, e)
