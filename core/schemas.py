from marshmallow import Schema, fields, validate, ValidationError, INCLUDE

from models import AUTHORING_TYPES, DELIVERY_TYPES, KEY_EVENT_TYPES
from utils.validation import is_valid_github_url, is_valid_url


def validate_base_url(value):
    if not is_valid_url(value):
        raise ValidationError("Invalid base URL format")


def validate_github_url(value):
    if value and not is_valid_github_url(value):
        raise ValidationError("Invalid GitHub URL format")


class SiteSchema(Schema):
    baseURL = fields.String(required=True, validate=validate_base_url)
    deliveryType = fields.String(load_default="aem_edge", validate=validate.OneOf(DELIVERY_TYPES))
    authoringType = fields.String(allow_none=True, validate=validate.OneOf(AUTHORING_TYPES))
    gitHubURL = fields.String(allow_none=True, validate=validate_github_url)
    organizationId = fields.UUID(allow_none=True)
    isLive = fields.Boolean(load_default=False)
    config = fields.Dict()
    deliveryConfig = fields.Dict()
    hlxConfig = fields.Dict()

    class Meta:
        unknown = INCLUDE


class KeyEventSchema(Schema):
    name = fields.String(required=True, validate=validate.Length(min=1, max=255))
    type = fields.String(required=True, validate=validate.OneOf(KEY_EVENT_TYPES))
    time = fields.DateTime(allow_none=True)


def first_error(err: ValidationError) -> str:
    """Flatten marshmallow's error dict to a single `field: message` string."""
    messages = err.messages
    if isinstance(messages, dict):
        for key, value in messages.items():
            text = value[0] if isinstance(value, list) and value else value
            return f"{key}: {text}"
    return str(messages)
