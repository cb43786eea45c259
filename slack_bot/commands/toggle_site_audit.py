"""
`audit enable|disable {site} {auditType} [profile]`

    @spacecat audit enable https://site.com cwv
    @spacecat audit disable https://site.com broken-backlinks
    @spacecat audit disable https://site.com all          (demo profile)
    @spacecat audit disable https://site.com all paid
"""
import json
import logging

from config_data import load_profile
from models import HandlerDependencyError
from slack_bot.base import extract_url_from_slack_input
from slack_bot.commands.base import BaseCommand
from utils.validation import has_text, is_valid_url

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE_PREFIX = ':white_check_mark: '
ERROR_MESSAGE_PREFIX = ':x: '
DEFAULT_PROFILE = 'demo'


def missing_preflight_items(site):
    """Configuration a site still needs before preflight can run; empty when complete."""
    authoring_type = site.authoring_type
    if not authoring_type:
        return ['Authoring Type', 'Preview URL']
    if authoring_type == 'documentauthoring':
        if not (site.hlx_config or {}).get('rso'):
            return ['Helix Preview URL']
    elif authoring_type in ('cs', 'cs/crosswalk'):
        delivery = site.delivery_config or {}
        if not (delivery.get('programId') and delivery.get('environmentId')):
            return ['AEM CS Preview URL']
    return []


def prompt_preflight_config(say, site, audit_type):
    missing = missing_preflight_items(site)
    missing_text = '\n'.join(f"• {item}" for item in missing)
    return say({
        'text': f":warning: Preflight audit requires additional configuration for `{site.base_url}`",
        'blocks': [
            {
                'type': 'section',
                'text': {
                    'type': 'mrkdwn',
                    'text': (f":warning: *Preflight audit requires additional configuration for:*\n"
                             f"`{site.base_url}`\n\n*Missing:*\n{missing_text}"),
                },
            },
            {
                'type': 'actions',
                'elements': [{
                    'type': 'button',
                    'text': {'type': 'plain_text', 'text': 'Configure & Enable'},
                    'style': 'primary',
                    'action_id': 'open_preflight_config',
                    'value': json.dumps({'siteId': site.id, 'auditType': audit_type}),
                }],
            },
        ],
    })


def validate_input(enable_audit, audit_type):
    if enable_audit not in ('enable', 'disable'):
        raise ValueError('The "enableAudit" parameter is required and must be set to "enable" or "disable".')
    if not has_text(audit_type):
        raise ValueError('The audit type parameter is required.')


class ToggleSiteAuditCommand(BaseCommand):
    id = 'configurations-sites--toggle-site-audit'
    name = 'Enable/Disable the Site Audit'
    description = ('Enables or disables an audit for a site. '
                   '`disable ... all [profile]` disables every audit of a profile (default: demo).')
    phrases = ('audit',)
    usage_text = 'audit {enable/disable} {site} {auditType} [profileName]'

    def _disable_profile(self, say, configuration, site, profile_input):
        profile_name = profile_input.lower() if profile_input else DEFAULT_PROFILE
        try:
            profile = load_profile(profile_name)
        except KeyError as e:
            logger.error(f"Failed to load profile \"{profile_name}\": {e}")
            say(f"{ERROR_MESSAGE_PREFIX}Failed to load profile \"{profile_name}\". {e.args[0]}")
            return

        enabled = [t for t in profile.get('audits', {}) if configuration.is_handler_enabled_for_site(t, site)]
        for audit_type in enabled:
            configuration.disable_handler_for_site(audit_type, site)
        self.data_access.configurations.save(configuration)
        say(f"{SUCCESS_MESSAGE_PREFIX}Disabled {len(enabled)} audits from profile "
            f"\"{profile_name}\" for \"{site.base_url}\".")

    def handle_execution(self, args, slack_context):
        say = slack_context.say
        try:
            enable_input, base_url_input, audit_type, profile_input = (list(args) + [None] * 4)[:4]
            enable_audit = (enable_input or '').lower()
            is_enable = enable_audit == 'enable'

            validate_input(enable_audit, audit_type)

            base_url = extract_url_from_slack_input(base_url_input)
            if not is_valid_url(base_url):
                say(f"{ERROR_MESSAGE_PREFIX}Please provide a single valid baseURL.")
                return

            configuration = self.data_access.configurations.find_latest()
            site = self.data_access.sites.find_by_base_url(base_url)
            if not site:
                say(f"{ERROR_MESSAGE_PREFIX}Cannot update site with baseURL: \"{base_url}\", site not found.")
                return

            if audit_type.lower() == 'all':
                if is_enable:
                    say(f"{ERROR_MESSAGE_PREFIX}\"enable all\" is not supported.")
                    return
                self._disable_profile(say, configuration, site, profile_input)
                return

            registered = configuration.handlers
            if audit_type not in registered:
                allowed = '\n'.join(registered)
                say(f"{ERROR_MESSAGE_PREFIX}The \"{audit_type}\" is not present in the configuration.\n"
                    f"List of allowed audits:\n{allowed}.")
                return

            if is_enable:
                if audit_type == 'preflight' and missing_preflight_items(site):
                    prompt_preflight_config(say, site, audit_type)
                    return
                try:
                    configuration.enable_handler_for_site(audit_type, site)
                except HandlerDependencyError as e:
                    say(f"{ERROR_MESSAGE_PREFIX}{e}")
                    return
            else:
                configuration.disable_handler_for_site(audit_type, site)

            self.data_access.configurations.save(configuration)
            say(f"{SUCCESS_MESSAGE_PREFIX}The audit \"{audit_type}\" has been *{enable_audit}d* for \"{site.base_url}\".")
        except Exception as e:
            logger.error(f"toggle site audit failed: {e}", exc_info=True)
            say(f"{ERROR_MESSAGE_PREFIX}An error occurred while trying to enable or disable audits: {e}")
