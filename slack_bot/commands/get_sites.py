from datetime import datetime, timezone
import logging

from slack_bot.base import post_error_message, send_file, send_message_blocks
from slack_bot.commands.base import BaseCommand
from slack_bot.format import format_sites_to_csv

logger = logging.getLogger(__name__)

FILTER_ARGS = {'all': 'all', 'live': 'live', 'non-live': 'non-live'}
STRATEGY_ARGS = ('desktop', 'mobile')
DELIVERY_ARGS = ('aem_edge', 'aem_cs', 'other')


def parse_get_sites_args(args):
    """(live filter, PSI strategy, delivery type); unknown words are ignored."""
    filter_status, psi_strategy, delivery_type = 'live', 'mobile', 'all'
    for arg in args:
        if arg in FILTER_ARGS:
            filter_status = FILTER_ARGS[arg]
        elif arg in STRATEGY_ARGS:
            psi_strategy = arg
        elif arg in DELIVERY_ARGS:
            delivery_type = arg
    return filter_status, psi_strategy, delivery_type


class GetSitesCommand(BaseCommand):
    id = 'get-all-sites'
    name = 'Get All Sites'
    description = 'Retrieves all known sites and includes the latest audit scores'
    phrases = ('get sites', 'get all sites')
    usage_text = 'get sites or get all sites [desktop|mobile|all] [live|non-live] [aem_edge|aem_cs|other];'

    def handle_execution(self, args, slack_context):
        say = slack_context.say
        filter_status, psi_strategy, delivery_type = parse_get_sites_args(args)

        try:
            rows = self.data_access.sites.all_with_latest_audit(f"lhs-{psi_strategy}", True, delivery_type)
            if filter_status != 'all':
                want_live = filter_status == 'live'
                rows = [(site, audit) for site, audit in rows if site.is_live == want_live]

            if not rows:
                send_message_blocks(say, [{
                    'text': (f"\n*No sites found*:\n\nPSI Strategy: *{psi_strategy}*\n"
                             f"Delivery Type: *{delivery_type}*\n"),
                }])
                return

            send_message_blocks(say, [{
                'text': (f"\n*Sites:* {len(rows)} total {filter_status} sites\n\n"
                         f"PSI Strategy: *{psi_strategy}*\nDelivery Type: *{delivery_type}*\n\n"
                         f"_Sites are ordered by performance score, then all other scores, ascending._\n"),
            }])
            stamp = datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%S.%fZ')
            file_name = f"sites-{filter_status}-{psi_strategy}-{delivery_type}-{stamp}.csv"
            send_file(slack_context, format_sites_to_csv(rows), file_name)
        except Exception as e:
            logger.error(f"get sites failed: {e}", exc_info=True)
            post_error_message(say, e)
