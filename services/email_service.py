# email_service.py - IMS service token + Post Office e-mail delivery
from typing import Any, Dict, List, Optional
from xml.sax.saxutils import escape

import requests

from config import CONFIG
from logging_config import get_logger

logger = get_logger("email_service")


class ImsError(Exception):
    pass


def get_ims_service_token(session: Optional[requests.Session] = None) -> str:
    """Service access token from IMS `/ims/token/v3` using the integration's client code."""
    ims = CONFIG.ims
    if not ims.host or not ims.client_id:
        raise ImsError("IMS is not configured")
    http = session or requests
    try:
        resp = http.post(
            f"https://{ims.host}/ims/token/v3" if "://" not in ims.host else f"{ims.host}/ims/token/v3",
            data={
                "grant_type": "authorization_code",
                "client_id": ims.client_id,
                "client_secret": ims.client_secret,
                "code": ims.client_code,
                "scope": ims.scope,
            },
            timeout=ims.timeout,
        )
    except requests.RequestException as e:
        raise ImsError(f"IMS token request failed: {e}") from e
    if resp.status_code != 200:
        raise ImsError(f"IMS token request failed with status {resp.status_code}")
    token = (resp.json() or {}).get("access_token")
    if not token:
        raise ImsError("IMS token response did not contain an access token")
    return token


def build_email_payload(template: str, email_address: str, template_data: Dict[str, Any]) -> str:
    data_entries = "".join(
        f"<data><key>{escape(str(k))}</key><value>{escape(str(v))}</value></data>"
        for k, v in (template_data or {}).items()
    )
    return (template
            .replace("{{emailAddresses}}", f"<toList>{escape(email_address)}</toList>")
            .replace("{{templateData}}", data_entries))


def load_template(path: Optional[str] = None) -> str:
    with open(path or CONFIG.email.template_path, "r", encoding="utf-8") as f:
        return f.read()


def send_trial_user_emails(email_addresses: List[str], template_data: Dict[str, Any],
                           session: Optional[requests.Session] = None) -> List[Dict[str, Any]]:
    """Send one Post Office message per address; returns a result entry per address."""
    http = session or requests.Session()
    token = get_ims_service_token(http)
    template = load_template()
    url = (f"{CONFIG.email.postoffice_endpoint}/po-server/message"
           f"?templateName={CONFIG.email.template_name}&locale={CONFIG.email.locale}")
    headers = {
        "Accept": "application/xml",
        "Content-Type": "application/xml",
        "Authorization": f"IMS {token}",
    }

    results = []
    for address in email_addresses:
        try:
            resp = http.post(url, data=build_email_payload(template, address, template_data),
                             headers=headers, timeout=CONFIG.email.timeout)
            if 200 <= resp.status_code < 300:
                results.append({"email": address, "status": "success", "error": None})
            else:
                results.append({"email": address, "status": "failed",
                                "error": f"Post Office returned {resp.status_code}"})
        except requests.RequestException as e:
            logger.error("trial_email_send_failed", email=address, error=str(e))
            results.append({"email": address, "status": "failed", "error": str(e)})
    return results
