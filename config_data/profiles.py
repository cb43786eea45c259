"""
Onboarding profiles: which audits and imports a site gets for each profile.
"""

AUDIT_PROFILES = {
    'demo': {
        'audits': {
            'apex': {},
            'cwv': {},
            'lhs-mobile': {},
            'lhs-desktop': {},
            '404': {},
            'sitemap': {},
            'canonical': {},
            'broken-backlinks': {},
            'broken-internal-links': {},
            'meta-tags': {},
            'structured-data': {},
            'alt-text': {},
            'forms-opportunities': {},
            'experimentation-opportunities': {},
        },
        'imports': {
            'organic-traffic': {},
            'top-pages': {},
            'organic-keywords': {},
            'all-traffic': {},
        },
    },
    'default': {
        'audits': {
            'cwv': {},
            'lhs-mobile': {},
            '404': {},
            'sitemap': {},
            'canonical': {},
            'meta-tags': {},
        },
        'imports': {
            'organic-traffic': {},
            'top-pages': {},
        },
    },
    'paid': {
        'audits': {
            'cwv': {},
            'lhs-mobile': {},
            'lhs-desktop': {},
            'forms-opportunities': {},
            'experimentation-opportunities': {},
        },
        'imports': {
            'all-traffic': {},
            'top-pages': {},
        },
    },
    'llmo': {
        'audits': {
            'llm-error-pages': {},
            'geo-brand-presence': {},
            'llmo-referral-traffic': {},
            'cdn-analysis': {},
            'cdn-logs-report': {},
        },
        'imports': {
            'traffic-analysis': {},
            'llmo-prompts-ahrefs': {'limit': 50},
        },
    },
}


def load_profile(name):
    """Return the profile dict, raising KeyError with the known names when missing."""
    key = (name or '').lower()
    if key not in AUDIT_PROFILES:
        raise KeyError(f"Unknown profile \"{name}\". Known profiles: {', '.join(sorted(AUDIT_PROFILES))}")
    return AUDIT_PROFILES[key]


def get_profile_audit_types(name):
    return list(load_profile(name).get('audits', {}).keys())
