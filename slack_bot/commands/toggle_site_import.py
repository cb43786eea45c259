"""
`import enable|disable {site} {importType}`, or with a CSV of base URLs attached
`import enable|disable {profile|importType}`.

    @spacecat import enable https://site.com organic-traffic
    @spacecat import disable default          (sites.csv attached)
"""
import logging

from config_data import load_profile
from slack_bot.base import extract_url_from_slack_input, parse_csv
from slack_bot.commands.base import BaseCommand
from utils.validation import has_text, is_valid_url

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE_PREFIX = ':white_check_mark: '
ERROR_MESSAGE_PREFIX = ':x: '


class SiteNotFoundError(ValueError):
    pass


def validate_input(enable_import, import_type):
    if enable_import not in ('enable', 'disable'):
        raise ValueError('The "enableImport" parameter is required and must be set to "enable" or "disable".')
    if not has_text(import_type):
        raise ValueError('The import type parameter is required.')


def resolve_import_types(import_type_or_profile):
    """(import types, is_profile) for a profile name or a single import type."""
    try:
        profile = load_profile(import_type_or_profile)
    except KeyError:
        return [import_type_or_profile], False
    return list(profile.get('imports', {})), True


class ToggleSiteImportCommand(BaseCommand):
    id = 'configurations-sites--toggle-site-import'
    name = 'Enable/Disable the Site Import'
    description = ('Enables or disables an import for a site. Supports a single URL or an uploaded CSV '
                   'file with one baseURL per line (no headers). With a CSV, a profile name enables or '
                   'disables every import of the profile.')
    phrases = ('import',)
    usage_text = ('import {enable/disable} {site} {importType} for a single URL, '
                  'or import {enable/disable} {profile/importType} with a CSV file uploaded')

    def update_site(self, base_url, import_types, is_enable):
        if not is_valid_url(base_url):
            raise ValueError(f"Invalid URL: {base_url}")
        site = self.data_access.sites.find_by_base_url(base_url)
        if not site:
            raise SiteNotFoundError('Site not found')
        for import_type in import_types:
            if is_enable:
                site.config.enable_import(import_type)
            else:
                site.config.disable_import(import_type)
        self.data_access.sites.save(site)

    def _toggle_single(self, say, args, enable_import):
        _, base_url_input, import_type = (list(args) + [None] * 3)[:3]
        validate_input(enable_import, import_type)
        base_url = extract_url_from_slack_input(base_url_input)
        try:
            self.update_site(base_url, [import_type], enable_import == 'enable')
        except SiteNotFoundError:
            say(f"{ERROR_MESSAGE_PREFIX}Cannot update site with baseURL: \"{base_url}\", site not found.")
            return
        except ValueError as e:
            say(f"{ERROR_MESSAGE_PREFIX}{e}")
            return
        say(f"{SUCCESS_MESSAGE_PREFIX}The import \"{import_type}\" has been *{enable_import}d* for \"{base_url}\".")

    def _toggle_csv(self, say, files, bot_token, enable_import, import_type_or_profile):
        validate_input(enable_import, import_type_or_profile)
        import_types, is_profile = resolve_import_types(import_type_or_profile)

        kind = f"profile \"{import_type_or_profile}\"" if is_profile else f"import type \"{import_type_or_profile}\""
        plural = 's' if len(import_types) > 1 else ''
        say(f":information_source: Processing {kind} with {len(import_types)} import type{plural}: "
            f"{', '.join(import_types)}")

        try:
            rows = parse_csv(files[0], bot_token)
        except (ValueError, OSError) as e:
            logger.error(f"Failed to download the CSV file: {e}")
            say(f"{ERROR_MESSAGE_PREFIX}Failed to download the CSV file.")
            return
        if not rows:
            say(f"{ERROR_MESSAGE_PREFIX}The parsed CSV data is empty.")
            return
        invalid = [row[0] for row in rows if not is_valid_url(row[0])]
        if invalid:
            say(f"{ERROR_MESSAGE_PREFIX}Invalid URLs found in CSV:\n" + '\n'.join(invalid))
            return

        base_urls = [row[0] for row in rows]
        say(f":hourglass_flowing_sand: Processing {len(base_urls)} URLs...")
        successful, failed = [], []
        for base_url in base_urls:
            try:
                self.update_site(base_url, import_types, enable_import == 'enable')
                successful.append(base_url)
            except Exception as e:
                logger.error(f"Failed to {enable_import} imports for {base_url}: {e}")
                failed.append((base_url, str(e)))

        message = ':clipboard: *Bulk Update Results*\n'
        if is_profile:
            message += f"\nProfile: `{import_type_or_profile}` with {len(import_types)} import types:"
            message += "\n```" + '\n'.join(import_types) + "```"
        else:
            message += f"\nImport Type: `{import_type_or_profile}`"
        if successful:
            message += f"\n{SUCCESS_MESSAGE_PREFIX}Successfully {enable_import}d for {len(successful)} sites:"
            message += "\n```" + '\n'.join(successful) + "```"
        if failed:
            message += f"\n{ERROR_MESSAGE_PREFIX}Failed to process {len(failed)} sites:"
            message += "\n```" + ''.join(f"{url}: {error}\n" for url, error in failed) + "```"
        say(message)

    def handle_execution(self, args, slack_context):
        say = slack_context.say
        try:
            enable_input, type_input = (list(args) + [None] * 2)[:2]
            enable_import = (enable_input or '').lower()
            if slack_context.files:
                self._toggle_csv(say, slack_context.files, slack_context.bot_token, enable_import,
                                 type_input.lower() if type_input else None)
            else:
                self._toggle_single(say, args, enable_import)
        except Exception as e:
            logger.error(f"toggle site import failed: {e}", exc_info=True)
            say(f"{ERROR_MESSAGE_PREFIX}An error occurred while trying to enable or disable imports: {e}")
