#!/usr/bin/env python3
"""Tests for the Slack mention commands: get site(s), site audits, run audit(s), run scrape, imports, help and dispatch."""
import json
from datetime import datetime
from unittest.mock import patch, MagicMock

import pytest

from models import Audit, Configuration, Site, SiteConfig, SiteTopPage
from slack_bot.commands.base import CommandContext
from slack_bot.commands.get_site import GetSiteCommand, format_audits
from slack_bot.commands.get_site_audits import GetSiteAuditsCommand
from slack_bot.commands.get_sites import GetSitesCommand, parse_get_sites_args
from slack_bot.commands.help import HelpCommand
from slack_bot.commands.run_all_audits import RunAllAuditsCommand
from slack_bot.commands.run_audit import RunAuditCommand, parse_keyword_arguments
from slack_bot.commands.run_scrape import RunScrapeCommand
from slack_bot.commands.run_traffic_analysis_backfill import RunTrafficAnalysisBackfillCommand
from slack_bot.commands.toggle_site_import import ToggleSiteImportCommand
from slack_bot.handler import SlackHandler

SITE_ID = '9c4c7c4a-0f6b-4e5c-8b1d-3a0f0b7c1e21'
ORG_ID = '5f3b3626-029c-476e-924b-0c1bba2e871f'


def said(slack_context):
    return [c.args[0] for c in slack_context.say.call_args_list]


def _site(**kwargs):
    defaults = {'id': SITE_ID, 'base_url': 'https://www.example.com', 'organization_id': ORG_ID}
    defaults.update(kwargs)
    return Site(**defaults)


def _configuration(enabled=(), disabled=()):
    handlers = {t: {'enabledByDefault': True} for t in enabled}
    handlers.update({t: {'enabledByDefault': False} for t in disabled})
    return Configuration(version=3, handlers=handlers, queues={'audits': 'q-audits', 'imports': 'q-imports'})


@pytest.fixture
def context():
    return CommandContext(data_access=MagicMock(), sqs=MagicMock())


# ==================== Base command ====================

def test_phrase_matching_requires_word_boundary(context):
    command = GetSiteCommand(context)
    assert command.accepts('get site example.com')
    assert command.accepts('get site')
    assert not command.accepts('get sites')
    assert command.extract_arguments('get site example.com desktop') == ['example.com', 'desktop']


def test_command_requires_context():
    with pytest.raises(ValueError):
        GetSiteCommand(None)


# ==================== get site ====================

def test_get_site_usage_without_url(context, slack_context):
    GetSiteCommand(context).handle_execution([], slack_context)
    assert said(slack_context) == ['Usage: _get site or get baseURL {baseURL} [desktop|mobile];_']


def test_get_site_not_found(context, slack_context):
    context.data_access.sites.find_by_base_url.return_value = None
    GetSiteCommand(context).handle_execution(['<https://www.example.com|www.example.com>'], slack_context)
    assert said(slack_context) == [":x: No site found with base URL 'https://example.com'."]


def test_get_site_posts_status_blocks(context, slack_context):
    site = _site()
    audit = Audit(site_id=SITE_ID, audit_type='lhs-desktop', audited_at=datetime(2024, 1, 2, 3, 4, 5),
                  audit_result={'scores': {'performance': 0.5, 'seo': 0.9, 'accessibility': 1,
                                           'best-practices': 0.7}}, is_live=True)
    context.data_access.sites.find_by_base_url.return_value = site
    context.data_access.audits.all_by_site_id.return_value = [audit]
    context.data_access.configurations.find_latest.return_value = _configuration(disabled=['lhs-desktop'])

    GetSiteCommand(context).handle_execution(['example.com', 'desktop'], slack_context)

    context.data_access.audits.all_by_site_id.assert_called_once_with(SITE_ID, 'lhs-desktop')
    message = said(slack_context)[0]
    assert message['unfurl_links'] is False
    text = message['blocks'][0]['text']['text']
    assert '*Site Status for https://www.example.com*' in text
    assert 'Audits of type *lhs-desktop* are disabled' in text
    assert '2024-01-02 03:04:05' in text
    assert '50' in text and '90' in text


def test_format_audits_marks_lighthouse_errors():
    audit = Audit(site_id=SITE_ID, audit_type='lhs-mobile', audited_at=datetime(2024, 1, 2), is_error=True,
                  audit_result={'runtimeError': {'code': 'NO_FCP', 'message': 'No paint'}})
    assert 'Lighthouse Error: No paint [NO_FCP]' in format_audits([audit])
    assert format_audits([]) == 'No audit history available'


def test_get_site_reports_errors(context, slack_context):
    context.data_access.sites.find_by_base_url.side_effect = RuntimeError('db down')
    GetSiteCommand(context).handle_execution(['example.com'], slack_context)
    assert said(slack_context) == [':nuclear-warning: Oops! Something went wrong: db down']


# ==================== get sites ====================

def test_parse_get_sites_args():
    assert parse_get_sites_args([]) == ('live', 'mobile', 'all')
    assert parse_get_sites_args(['desktop', 'non-live', 'aem_cs', 'junk']) == ('non-live', 'desktop', 'aem_cs')


def test_get_sites_uploads_csv_of_filtered_sites(context, slack_context):
    context.data_access.sites.all_with_latest_audit.return_value = [
        (_site(is_live=True), None),
        (_site(id='other', base_url='https://other.com', is_live=False), None),
    ]
    GetSitesCommand(context).handle_execution(['live'], slack_context)

    context.data_access.sites.all_with_latest_audit.assert_called_once_with('lhs-mobile', True, 'all')
    assert '*Sites:* 1 total live sites' in said(slack_context)[0]['blocks'][0]['text']['text']
    upload = slack_context.client.files_upload_v2.call_args.kwargs
    assert upload['filename'].startswith('sites-live-mobile-all-')
    content = upload['content'].decode('utf-8')
    assert 'https://www.example.com' in content
    assert 'https://other.com' not in content


def test_get_sites_none_found(context, slack_context):
    context.data_access.sites.all_with_latest_audit.return_value = []
    GetSitesCommand(context).handle_execution(['all', 'aem_edge'], slack_context)
    assert '*No sites found*' in said(slack_context)[0]['blocks'][0]['text']['text']
    slack_context.client.files_upload_v2.assert_not_called()


# ==================== run audit ====================

def test_parse_keyword_arguments_keeps_slack_links_positional():
    keywords, positional = parse_keyword_arguments(
        ['<https://www.example.com|www.example.com>', 'audit:cwv', 'urlLimit:10'])
    assert keywords == {'audit': 'cwv', 'urlLimit': '10'}
    assert positional == ['<https://www.example.com|www.example.com>']


def test_run_audit_usage_without_url(context, slack_context):
    RunAuditCommand(context).handle_execution([], slack_context)
    assert said(slack_context)[0].startswith('Usage: _run audit {site}')


def test_run_audit_defaults_to_lhs_mobile(context, slack_context):
    context.data_access.sites.find_by_base_url.return_value = _site()
    context.data_access.configurations.find_latest.return_value = _configuration(enabled=['lhs-mobile'])
    with patch('slack_bot.commands.run_audit.trigger_audit_for_site') as trigger:
        RunAuditCommand(context).handle_execution(['example.com'], slack_context)
    assert said(slack_context) == [':adobe-run: Triggering lhs-mobile audit for https://example.com']
    trigger.assert_called_once_with(context.sqs, context.data_access.sites.find_by_base_url.return_value,
                                    'lhs-mobile', slack_context, None)


def test_run_audit_keyword_arguments_become_audit_data(context, slack_context):
    context.data_access.sites.find_by_base_url.return_value = _site()
    context.data_access.configurations.find_latest.return_value = _configuration(enabled=['broken-backlinks'])
    with patch('slack_bot.commands.run_audit.trigger_audit_for_site') as trigger:
        RunAuditCommand(context).handle_execution(['example.com', 'audit:broken-backlinks', 'limit:5'],
                                                  slack_context)
    assert trigger.call_args.args[2] == 'broken-backlinks'
    assert json.loads(trigger.call_args.args[4]) == {'limit': '5'}


def test_run_audit_disabled_type(context, slack_context):
    context.data_access.sites.find_by_base_url.return_value = _site()
    context.data_access.configurations.find_latest.return_value = _configuration(disabled=['cwv'])
    with patch('slack_bot.commands.run_audit.trigger_audit_for_site') as trigger:
        RunAuditCommand(context).handle_execution(['example.com', 'cwv'], slack_context)
    assert said(slack_context) == [
        ":x: Will not audit site 'https://example.com' because audits of type 'cwv' are disabled for this site."
    ]
    trigger.assert_not_called()


def test_run_audit_all_runs_enabled_audits_only(context, slack_context):
    context.data_access.sites.find_by_base_url.return_value = _site()
    context.data_access.configurations.find_latest.return_value = _configuration(
        enabled=['cwv', '404', 'not-an-audit'], disabled=['sitemap'])
    with patch('slack_bot.commands.run_audit.trigger_audit_for_site') as trigger:
        RunAuditCommand(context).handle_execution(['example.com', 'all'], slack_context)
    assert [c.args[2] for c in trigger.call_args_list] == ['cwv', '404']


def test_run_audit_all_without_enabled_audits(context, slack_context):
    context.data_access.sites.find_by_base_url.return_value = _site()
    context.data_access.configurations.find_latest.return_value = _configuration()
    RunAuditCommand(context).handle_execution(['example.com', 'audit:all'], slack_context)
    assert said(slack_context) == [':warning: No audits configured for site `https://example.com`']


def test_run_audit_url_and_file_are_exclusive(context, slack_context):
    slack_context.files = [{'name': 'sites.csv'}]
    RunAuditCommand(context).handle_execution(['example.com'], slack_context)
    assert said(slack_context) == [
        ':warning: Please provide either a baseURL or a CSV file with a list of site URLs.'
    ]


def test_run_audit_csv(context, slack_context):
    slack_context.files = [{'name': 'sites.csv', 'url_private': 'https://files.slack.com/sites.csv'}]
    context.data_access.sites.find_by_base_url.return_value = _site()
    context.data_access.configurations.find_latest.return_value = _configuration(enabled=['cwv'])
    rows = [['https://www.example.com'], ['not a url']]
    with patch('slack_bot.commands.run_audit.parse_csv', return_value=rows) as parse, \
            patch('slack_bot.commands.run_audit.trigger_audit_for_site') as trigger:
        RunAuditCommand(context).handle_execution(['cwv'], slack_context)
    parse.assert_called_once_with(slack_context.files[0], 'xoxb-test')
    messages = said(slack_context)
    assert messages[0] == ':adobe-run: Triggering cwv audit for 2 sites.'
    assert ':warning: Invalid URL found in CSV file: not a url' in messages
    assert trigger.call_count == 1


def test_run_audit_rejects_non_csv_file(context, slack_context):
    slack_context.files = [{'name': 'sites.xlsx'}]
    RunAuditCommand(context).handle_execution([], slack_context)
    assert said(slack_context) == [':warning: Please provide a CSV file.']


# ==================== run scrape ====================

def test_run_scrape_only_for_allowed_users(context, slack_context):
    slack_context.user = 'U_SOMEONE'
    RunScrapeCommand(context).handle_execution(['example.com'], slack_context)
    assert said(slack_context) == [':error: Only selected SpaceCat fluid team members can run scraper.']
    context.data_access.sites.find_by_base_url.assert_not_called()


def test_run_scrape_invalid_interval(context, slack_context):
    RunScrapeCommand(context).handle_execution(['example.com', '2024-05-01', '2024-04-01'], slack_context)
    assert said(slack_context)[0].startswith(':error: Invalid date interval.')


def test_run_scrape_without_top_pages(context, slack_context):
    context.data_access.sites.find_by_base_url.return_value = _site()
    context.data_access.site_top_pages.all_by_site_id_source_and_geo.return_value = []
    RunScrapeCommand(context).handle_execution(['example.com'], slack_context)
    assert said(slack_context) == [':warning: No top pages found for site `https://example.com`']


def test_run_scrape_triggers_scraper(context, slack_context):
    context.data_access.sites.find_by_base_url.return_value = _site()
    context.data_access.site_top_pages.all_by_site_id_source_and_geo.return_value = [
        SiteTopPage(site_id=SITE_ID, url='https://www.example.com/a', traffic=10),
        SiteTopPage(site_id=SITE_ID, url='https://www.example.com/b', traffic=5),
    ]
    with patch('slack_bot.commands.run_scrape.trigger_scraper_run') as trigger:
        RunScrapeCommand(context).handle_execution(['example.com', '2024-01-01', '2024-02-01'], slack_context)
    context.data_access.site_top_pages.all_by_site_id_source_and_geo.assert_called_once_with(
        SITE_ID, 'ahrefs', 'global')
    trigger.assert_called_once_with(context.sqs, SITE_ID, [
        {'url': 'https://www.example.com/a'}, {'url': 'https://www.example.com/b'},
    ], slack_context)
    assert said(slack_context)[-1].startswith(':white_check_mark: Completed triggering scrape runs')


# ==================== help / dispatch ====================

def test_help_lists_commands(context, slack_context):
    commands = [GetSiteCommand(context), RunAuditCommand(context)]
    HelpCommand(context, commands).handle_execution([], slack_context)
    sections = said(slack_context)[0]['blocks']
    assert len(sections) == 3
    assert sections[1]['text']['text'].startswith('*Get Site Status*')


def test_handler_dispatches_mentions(context):
    client = MagicMock()
    handler = SlackHandler(context=context, client=client)
    with patch.object(RunAuditCommand, 'handle_execution') as run_audit:
        handler.handle_event({'type': 'app_mention', 'text': '<@UBOT> run audit example.com cwv',
                              'channel': 'C1', 'ts': '111.222', 'user': 'U1'})
    args, slack_context = run_audit.call_args.args
    assert args == ['example.com', 'cwv']
    assert slack_context.channel_id == 'C1'
    assert slack_context.thread_ts == '111.222'


def test_handler_falls_back_to_help(context):
    client = MagicMock()
    handler = SlackHandler(context=context, client=client)
    handler.handle_event({'type': 'app_mention', 'text': '<@UBOT> make coffee', 'channel': 'C1',
                          'ts': '1.1', 'thread_ts': '0.9'})
    kwargs = client.chat_postMessage.call_args.kwargs
    assert kwargs['channel'] == 'C1'
    assert kwargs['thread_ts'] == '0.9'
    assert 'I can assist with a few things' in kwargs['blocks'][0]['text']['text']


def test_handler_ignores_other_events(context):
    client = MagicMock()
    SlackHandler(context=context, client=client).handle_event({'type': 'message', 'text': 'hi'})
    client.chat_postMessage.assert_not_called()


def test_handler_routes_interactions(context):
    handler = SlackHandler(context=context, client=MagicMock())
    with patch.dict('slack_bot.handler.VIEW_SUBMISSIONS', {'preflight_config_modal': MagicMock(return_value=None)}):
        assert handler.handle_interaction(
            {'type': 'view_submission', 'view': {'callback_id': 'preflight_config_modal'}}) is None
    assert handler.handle_interaction({'type': 'shortcut'}) is None


def test_handler_routes_similar_phrases(context):
    handler = SlackHandler(context=context, client=MagicMock())
    assert isinstance(handler.find_command('get site-audits example.com'), GetSiteAuditsCommand)
    assert isinstance(handler.find_command('get site example.com'), GetSiteCommand)
    assert isinstance(handler.find_command('run all audits example.com'), RunAllAuditsCommand)
    assert isinstance(handler.find_command('run audit example.com'), RunAuditCommand)
    assert isinstance(handler.find_command('run traffic-analysis-backfill example.com'),
                      RunTrafficAnalysisBackfillCommand)
    assert isinstance(handler.find_command('import enable example.com top-pages'), ToggleSiteImportCommand)


# ==================== get site-audits ====================

def test_get_site_audits_lists_enabled_and_disabled(context, slack_context):
    context.data_access.sites.find_by_base_url.return_value = _site()
    context.data_access.configurations.find_latest.return_value = _configuration(
        enabled=['cwv', '404'], disabled=['sitemap'])
    GetSiteAuditsCommand(context).handle_execution(['<https://www.example.com|example.com>'], slack_context)

    message = said(slack_context)[0]
    assert message['unfurl_links'] is False
    text = message['blocks'][0]['text']['text']
    assert text.startswith('*Site Audit Status for https://www.example.com*')
    assert '2 enabled, 1 disabled (3 total audit types)' in text
    assert '*Enabled Audits:* :white_check_mark:\n• cwv\n• 404\n' in text
    assert '*Disabled Audits:* :x:\n• sitemap\n' in text


def test_get_site_audits_without_handlers(context, slack_context):
    context.data_access.sites.find_by_base_url.return_value = _site()
    context.data_access.configurations.find_latest.return_value = _configuration()
    GetSiteAuditsCommand(context).handle_execution(['example.com'], slack_context)
    assert said(slack_context) == [':warning: No audit types are configured in the system.']


def test_get_site_audits_usage_and_unknown_site(context, slack_context):
    command = GetSiteAuditsCommand(context)
    command.handle_execution([], slack_context)
    context.data_access.sites.find_by_base_url.return_value = None
    command.handle_execution(['example.com'], slack_context)
    assert said(slack_context) == [
        'Usage: _get site-audits {baseURL}_',
        ":x: No site found with base URL 'https://example.com'.",
    ]


# ==================== run all audits ====================

def test_run_all_audits_triggers_enabled_audits(context, slack_context):
    site = _site()
    context.data_access.sites.find_by_base_url.return_value = site
    context.data_access.configurations.find_latest.return_value = _configuration(
        enabled=['cwv', '404'], disabled=['sitemap'])
    with patch('slack_bot.commands.run_all_audits.trigger_audit_for_site') as trigger:
        RunAllAuditsCommand(context).handle_execution(['example.com'], slack_context)
    assert [c.args for c in trigger.call_args_list] == [
        (context.sqs, site, 'cwv', slack_context),
        (context.sqs, site, '404', slack_context),
    ]
    assert said(slack_context) == [':white_check_mark: All audits triggered successfully.']


def test_run_all_audits_without_enabled_audits(context, slack_context):
    context.data_access.sites.find_by_base_url.return_value = _site()
    context.data_access.configurations.find_latest.return_value = _configuration(disabled=['cwv'])
    with patch('slack_bot.commands.run_all_audits.trigger_audit_for_site') as trigger:
        RunAllAuditsCommand(context).handle_execution(['example.com'], slack_context)
    trigger.assert_not_called()
    assert said(slack_context)[0] == ':warning: No audits configured for site `https://example.com`'


def test_run_all_audits_reports_failed_trigger(context, slack_context):
    context.data_access.sites.find_by_base_url.return_value = _site()
    context.data_access.configurations.find_latest.return_value = _configuration(enabled=['cwv', '404'])
    with patch('slack_bot.commands.run_all_audits.trigger_audit_for_site',
               side_effect=[RuntimeError('queue down'), 'msg-1']) as trigger:
        RunAllAuditsCommand(context).handle_execution(['example.com'], slack_context)
    assert trigger.call_count == 2
    assert said(slack_context)[0] == ':nuclear-warning: Oops! Something went wrong: queue down'


def test_run_all_audits_csv(context, slack_context):
    slack_context.files = [{'name': 'sites.csv', 'url_private': 'https://files.slack.com/sites.csv'}]
    context.data_access.sites.find_by_base_url.return_value = _site()
    context.data_access.configurations.find_latest.return_value = _configuration(enabled=['cwv'])
    rows = [['https://www.example.com'], ['nope']]
    with patch('slack_bot.commands.run_all_audits.parse_csv', return_value=rows), \
            patch('slack_bot.commands.run_all_audits.trigger_audit_for_site') as trigger:
        RunAllAuditsCommand(context).handle_execution([], slack_context)
    assert trigger.call_count == 1
    assert said(slack_context) == [
        ':warning: Invalid URL found in CSV file: nope',
        ':white_check_mark: All audits triggered successfully.',
    ]


def test_run_all_audits_usage(context, slack_context):
    RunAllAuditsCommand(context).handle_execution([], slack_context)
    assert said(slack_context) == ['Usage: _run all audits {baseURL|CSV-File}_']


# ==================== run traffic-analysis-backfill ====================

def _traffic_site(enabled=True):
    imports = [{'type': 'traffic-analysis', 'enabled': True}] if enabled else []
    return _site(config=SiteConfig({'imports': imports}))


def _traffic_configuration(with_job=True):
    configuration = _configuration()
    if with_job:
        configuration.jobs = [{'group': 'imports', 'type': 'traffic-analysis', 'interval': 'weekly'}]
    return configuration


def test_traffic_analysis_backfill_queues_each_week(context, slack_context):
    context.data_access.sites.find_by_base_url.return_value = _traffic_site()
    context.data_access.configurations.find_latest.return_value = _traffic_configuration()
    weeks = [{'week': 10, 'year': 2025}, {'week': 9, 'year': 2025}, {'week': 8, 'year': 2025}]
    with patch('slack_bot.commands.run_traffic_analysis_backfill.get_last_number_of_weeks',
               return_value=weeks) as last_weeks:
        RunTrafficAnalysisBackfillCommand(context).handle_execution(['example.com', '3'], slack_context)

    last_weeks.assert_called_once_with(3)
    assert said(slack_context) == [
        ':adobe-run: Triggered backfill for traffic analysis import for site `https://example.com` for the last 3 weeks'
    ]
    assert context.sqs.send_message.call_count == 3
    queue_url, message = context.sqs.send_message.call_args_list[0].args
    assert queue_url == 'q-imports'
    assert message == {
        'type': 'traffic-analysis', 'siteId': SITE_ID, 'week': 10, 'year': 2025,
        'slackContext': {'channelId': 'C123', 'threadTs': '1700000000.000100'},
    }


def test_traffic_analysis_backfill_defaults_to_a_year(context, slack_context):
    context.data_access.sites.find_by_base_url.return_value = _traffic_site()
    context.data_access.configurations.find_latest.return_value = _traffic_configuration()
    RunTrafficAnalysisBackfillCommand(context).handle_execution(['example.com'], slack_context)
    assert context.sqs.send_message.call_count == 52


@pytest.mark.parametrize('weeks', ['0', '-2', 'many'])
def test_traffic_analysis_backfill_rejects_bad_weeks(context, slack_context, weeks):
    context.data_access.sites.find_by_base_url.return_value = _traffic_site()
    context.data_access.configurations.find_latest.return_value = _traffic_configuration()
    RunTrafficAnalysisBackfillCommand(context).handle_execution(['example.com', weeks], slack_context)
    assert said(slack_context) == [':warning: Invalid number of weeks specified. Please provide a positive integer.']
    context.sqs.send_message.assert_not_called()


def test_traffic_analysis_backfill_requires_enabled_import(context, slack_context):
    context.data_access.sites.find_by_base_url.return_value = _traffic_site(enabled=False)
    context.data_access.configurations.find_latest.return_value = _traffic_configuration()
    RunTrafficAnalysisBackfillCommand(context).handle_execution(['example.com'], slack_context)
    assert said(slack_context) == [
        ':warning: Import type traffic-analysis is not enabled for site `https://example.com`'
    ]


def test_traffic_analysis_backfill_requires_import_job(context, slack_context):
    context.data_access.sites.find_by_base_url.return_value = _traffic_site()
    context.data_access.configurations.find_latest.return_value = _traffic_configuration(with_job=False)
    RunTrafficAnalysisBackfillCommand(context).handle_execution(['example.com'], slack_context)
    assert said(slack_context) == [':warning: Import type traffic-analysis does not exist.']


# ==================== import enable/disable ====================

def test_toggle_import_enables_for_site(context, slack_context):
    site = _site()
    context.data_access.sites.find_by_base_url.return_value = site
    ToggleSiteImportCommand(context).handle_execution(['enable', 'example.com', 'top-pages'], slack_context)
    assert site.config.is_import_enabled('top-pages')
    context.data_access.sites.save.assert_called_once_with(site)
    assert said(slack_context) == [
        ':white_check_mark: The import "top-pages" has been *enabled* for "https://example.com".'
    ]


def test_toggle_import_disables_for_site(context, slack_context):
    site = _site(config=SiteConfig({'imports': [{'type': 'top-pages', 'enabled': True}]}))
    context.data_access.sites.find_by_base_url.return_value = site
    ToggleSiteImportCommand(context).handle_execution(['DISABLE', 'example.com', 'top-pages'], slack_context)
    assert not site.config.is_import_enabled('top-pages')
    assert said(slack_context)[0].endswith('has been *disabled* for "https://example.com".')


def test_toggle_import_unknown_site(context, slack_context):
    context.data_access.sites.find_by_base_url.return_value = None
    ToggleSiteImportCommand(context).handle_execution(['enable', 'example.com', 'top-pages'], slack_context)
    assert said(slack_context) == [':x: Cannot update site with baseURL: "https://example.com", site not found.']
    context.data_access.sites.save.assert_not_called()


def test_toggle_import_validates_action(context, slack_context):
    ToggleSiteImportCommand(context).handle_execution(['toggle', 'example.com', 'top-pages'], slack_context)
    assert said(slack_context) == [
        ':x: An error occurred while trying to enable or disable imports: '
        'The "enableImport" parameter is required and must be set to "enable" or "disable".'
    ]


def test_toggle_import_profile_from_csv(context, slack_context):
    slack_context.files = [{'name': 'sites.csv', 'url_private': 'https://files.slack.com/sites.csv'}]
    known = _site(base_url='https://a.com')
    context.data_access.sites.find_by_base_url.side_effect = lambda url: known if url == 'https://a.com' else None
    rows = [['https://a.com'], ['https://b.com']]
    with patch('slack_bot.commands.toggle_site_import.parse_csv', return_value=rows) as parse:
        ToggleSiteImportCommand(context).handle_execution(['enable', 'Default'], slack_context)

    parse.assert_called_once_with(slack_context.files[0], 'xoxb-test')
    assert known.config.is_import_enabled('organic-traffic')
    assert known.config.is_import_enabled('top-pages')
    messages = said(slack_context)
    assert messages[0] == (':information_source: Processing profile "default" with 2 import types: '
                           'organic-traffic, top-pages')
    assert messages[1] == ':hourglass_flowing_sand: Processing 2 URLs...'
    assert 'Profile: `default` with 2 import types:' in messages[2]
    assert ':white_check_mark: Successfully enabled for 1 sites:\n```https://a.com```' in messages[2]
    assert ':x: Failed to process 1 sites:\n```https://b.com: Site not found\n```' in messages[2]


def test_toggle_import_csv_with_invalid_urls(context, slack_context):
    slack_context.files = [{'name': 'sites.csv', 'url_private': 'https://files.slack.com/sites.csv'}]
    with patch('slack_bot.commands.toggle_site_import.parse_csv', return_value=[['nope'], ['https://a.com']]):
        ToggleSiteImportCommand(context).handle_execution(['disable', 'top-pages'], slack_context)
    assert said(slack_context)[-1] == ':x: Invalid URLs found in CSV:\nnope'
    context.data_access.sites.save.assert_not_called()
