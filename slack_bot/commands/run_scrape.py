import logging

from config import CONFIG
from job_triggers import trigger_scraper_run
from slack_bot.base import extract_url_from_slack_input, post_error_message, post_site_not_found_message
from slack_bot.commands.base import BaseCommand
from utils.validation import has_text, is_valid_date_interval

logger = logging.getLogger(__name__)


class RunScrapeCommand(BaseCommand):
    id = 'run-scrape'
    name = 'Run Scrape'
    description = ('Runs the scraper for the top pages of the site identified by its base URL, '
                   'optionally for a date range.\nOnly selected SpaceCat fluid team members can run scraper.\n'
                   'This runs the scraper for all configured sources and destinations '
                   '(source: ahrefs), so be aware of costs when choosing the date range.')
    phrases = ('run scrape',)
    usage_text = 'run scrape {baseURL} {startDate} {endDate}'

    def handle_execution(self, args, slack_context):
        say = slack_context.say

        if slack_context.user not in CONFIG.slack.run_import_user_ids:
            say(':error: Only selected SpaceCat fluid team members can run scraper.')
            return

        try:
            base_url_input, start_date, end_date = (list(args) + [None] * 3)[:3]
            base_url = extract_url_from_slack_input(base_url_input)

            if not has_text(base_url):
                say(self.usage())
                return

            if (start_date or end_date) and not is_valid_date_interval(start_date, end_date):
                say(':error: Invalid date interval. Please provide valid dates in the format YYYY-MM-DD. '
                    'The end date must be after the start date and within a two-year range.')
                return

            site = self.data_access.sites.find_by_base_url(base_url)
            if not site:
                post_site_not_found_message(say, base_url)
                return

            top_pages = self.data_access.site_top_pages.all_by_site_id_source_and_geo(site.id, 'ahrefs', 'global')
            if not top_pages:
                say(f":warning: No top pages found for site `{base_url}`")
                return

            urls = [{'url': page.url} for page in top_pages]
            say(f":white_check_mark: Found top pages for site `{base_url}`, total {len(top_pages)} pages.")

            trigger_scraper_run(self.sqs, site.id, urls, slack_context)
            say(f":adobe-run: Triggered scrape run for site `{base_url}` - total {len(urls)} URLs")
            say(f":white_check_mark: Completed triggering scrape runs for site `{base_url}` "
                f"and interval {start_date}-{end_date}\nTotal URLs: {len(urls)}")
        except Exception as e:
            logger.error(f"run scrape failed: {e}", exc_info=True)
            post_error_message(say, e)
