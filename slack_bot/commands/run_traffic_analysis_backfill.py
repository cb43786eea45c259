import logging

from slack_bot.base import extract_url_from_slack_input, post_error_message, post_site_not_found_message
from slack_bot.commands.base import BaseCommand
from utils.date_utils import get_last_number_of_weeks
from utils.validation import is_valid_url

logger = logging.getLogger(__name__)

TRAFFIC_ANALYSIS_IMPORT_TYPE = 'traffic-analysis'
DEFAULT_WEEKS = 52


def parse_weeks(value):
    """Positive week count, DEFAULT_WEEKS when omitted, None when invalid."""
    if value is None:
        return DEFAULT_WEEKS
    try:
        weeks = int(value)
    except ValueError:
        return None
    return weeks if weeks > 0 else None


class RunTrafficAnalysisBackfillCommand(BaseCommand):
    id = 'run-traffic-analysis-backfill'
    name = 'Run Traffic Analysis Backfill'
    description = ('Runs the traffic analysis import for the calendar weeks before the current one; '
                   f'the number of weeks is {DEFAULT_WEEKS} by default.')
    phrases = ('run traffic-analysis-backfill',)
    usage_text = 'run traffic-analysis-backfill {baseURL} {weeks}'

    def handle_execution(self, args, slack_context):
        say = slack_context.say
        try:
            base_url_input, weeks_input = (list(args) + [None] * 2)[:2]
            base_url = extract_url_from_slack_input(base_url_input)
            if not is_valid_url(base_url):
                say(self.usage())
                return

            site = self.data_access.sites.find_by_base_url(base_url)
            if not site:
                post_site_not_found_message(say, base_url)
                return

            configuration = self.data_access.configurations.find_latest()
            job_exists = any(job.get('group') == 'imports' and job.get('type') == TRAFFIC_ANALYSIS_IMPORT_TYPE
                             for job in configuration.jobs)
            if not job_exists:
                say(f":warning: Import type {TRAFFIC_ANALYSIS_IMPORT_TYPE} does not exist.")
                return
            if not site.config.is_import_enabled(TRAFFIC_ANALYSIS_IMPORT_TYPE):
                say(f":warning: Import type {TRAFFIC_ANALYSIS_IMPORT_TYPE} is not enabled for site `{base_url}`")
                return

            weeks = parse_weeks(weeks_input)
            if weeks is None:
                say(':warning: Invalid number of weeks specified. Please provide a positive integer.')
                return

            say(f":adobe-run: Triggered backfill for traffic analysis import for site `{base_url}` "
                f"for the last {weeks} weeks")
            queue_url = configuration.get_queues().get('imports')
            slack = {'channelId': slack_context.channel_id, 'threadTs': slack_context.thread_ts}
            for entry in get_last_number_of_weeks(weeks):
                logger.info(f"Import run of type {TRAFFIC_ANALYSIS_IMPORT_TYPE} for site {site.base_url} "
                            f"week {entry['week']}/{entry['year']}")
                self.sqs.send_message(queue_url, {
                    'type': TRAFFIC_ANALYSIS_IMPORT_TYPE,
                    'siteId': site.id,
                    'week': entry['week'],
                    'year': entry['year'],
                    'slackContext': slack,
                })
        except Exception as e:
            logger.error(f"traffic analysis backfill failed: {e}", exc_info=True)
            post_error_message(say, e)
