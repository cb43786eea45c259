import logging

from job_triggers import send_audit_message
from slack_bot.base import extract_url_from_slack_input, post_error_message
from slack_bot.commands.base import BaseCommand
from utils.date_utils import get_last_number_of_weeks
from utils.validation import is_valid_url

logger = logging.getLogger(__name__)

REFERRAL_TRAFFIC_AUDIT = 'llmo-referral-traffic'
REFERRAL_TRAFFIC_IMPORT = 'traffic-analysis'
AGENTIC_TRAFFIC_ANALYSIS_AUDIT = 'cdn-analysis'
AGENTIC_TRAFFIC_REPORT_AUDIT = 'cdn-logs-report'
BRAND_PRESENCE_AUDIT = 'geo-brand-presence'
PROMPTS_IMPORT = 'llmo-prompts-ahrefs'
BACKFILL_WEEKS = 4


def trigger_referral_traffic_backfill(sqs, configuration, site_id):
    """Queue a traffic-analysis import for each of the last four ISO weeks."""
    queue_url = configuration.get_queues().get('imports')
    for entry in get_last_number_of_weeks(BACKFILL_WEEKS):
        audit_context = {'auditType': REFERRAL_TRAFFIC_AUDIT, 'week': entry['week'], 'year': entry['year']}
        send_audit_message(sqs, queue_url, REFERRAL_TRAFFIC_IMPORT, audit_context, site_id)
        logger.info(f"Triggered import {REFERRAL_TRAFFIC_IMPORT} for site {site_id} "
                    f"week {entry['week']}/{entry['year']}")


class LlmoOnboardCommand(BaseCommand):
    id = 'onboard-llmo'
    name = 'Onboard LLMO'
    description = 'Onboards a site for LLMO (Large Language Model Optimizer) by setting dataFolder and brand.'
    phrases = ('onboard-llmo',)
    usage_text = 'onboard-llmo {baseURL} {dataFolder} {brandName}'

    def handle_execution(self, args, slack_context):
        say = slack_context.say
        try:
            if len(args) < 3:
                say(':warning: Missing required arguments. Please provide: `baseURL`, `dataFolder`, and `brandName`.')
                say(self.usage())
                return

            base_url_input, data_folder = args[0], args[1]
            brand_name = ' '.join(args[2:]).strip()
            if not brand_name:
                say(':warning: Brand name cannot be empty.')
                return

            base_url = extract_url_from_slack_input(base_url_input)
            if not is_valid_url(base_url):
                say(':warning: Please provide a valid site base URL.')
                return

            say(f":gear: Starting LLMO onboarding for site {base_url}...")

            site = self.data_access.sites.find_by_base_url(base_url)
            if not site:
                say(f":x: Site '{base_url}' not found. Please add the site first using the regular onboard command.")
                return
            logger.info(f"Found site {base_url} with ID: {site.id}")

            site_config = site.config
            site_config.update_llmo_brand(brand_name)
            site_config.update_llmo_data_folder(data_folder.strip())
            site_config.enable_import(REFERRAL_TRAFFIC_IMPORT)
            site_config.enable_import(PROMPTS_IMPORT, {'limit': 50})

            configuration = self.data_access.configurations.find_latest()
            configuration.enable_handler_for_site(REFERRAL_TRAFFIC_AUDIT, site)
            configuration.enable_handler_for_site(BRAND_PRESENCE_AUDIT, site)

            # cdn-analysis runs once per organization
            org_sites = self.data_access.sites.all_by_organization_id(site.organization_id)
            if any(configuration.is_handler_enabled_for_site(AGENTIC_TRAFFIC_ANALYSIS_AUDIT, s) for s in org_sites):
                logger.info(f"Agentic traffic audits already enabled for organization {site.organization_id}")
            else:
                logger.info(f"Enabling agentic traffic audits for organization {site.organization_id}")
                configuration.enable_handler_for_site(AGENTIC_TRAFFIC_ANALYSIS_AUDIT, site)

            configuration.enable_handler_for_site(AGENTIC_TRAFFIC_REPORT_AUDIT, site)

            try:
                self.data_access.configurations.save(configuration)
                self.data_access.sites.save(site)
                logger.info(f"Updated LLMO config for site {site.id}")
                trigger_referral_traffic_backfill(self.sqs, configuration, site.id)
            except Exception as e:
                logger.error(f"Error saving LLMO config for site {site.id}: {e}", exc_info=True)
                say(f":x: Failed to save LLMO configuration: {e}")
                return

            say(
                ":white_check_mark: *LLMO onboarding completed successfully!*\n\n"
                f":link: *Site:* {base_url}\n"
                f":identification_card: *Site ID:* {site.id}\n"
                f":file_folder: *Data Folder:* {data_folder}\n"
                f":label: *Brand:* {brand_name}\n\n"
                "The site is now ready for LLMO operations. "
                "You can access the configuration at the LLMO API endpoints."
            )
        except Exception as e:
            logger.error(f"Error in LLMO onboarding: {e}", exc_info=True)
            post_error_message(say, e)
