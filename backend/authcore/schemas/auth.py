"""Authentication-related Marshmallow schemas."""

from __future__ import annotations

from marshmallow import Schema, fields, validate


class BaseSchema(Schema):
    """Base schema enabling ordered output for consistent responses."""

    class Meta:
        ordered = True


class LoginSchema(BaseSchema):
    """Input payload for authenticating a user."""

    email = fields.Email(required=True, validate=validate.Length(max=254))
    password = fields.String(
        required=True, load_only=True, validate=validate.Length(min=1, max=128)
    )


class RefreshSchema(BaseSchema):
    """Refresh token presented in the body when no cookie is available."""

    refresh_token = fields.String(required=True, load_only=True)


class UserInfoSchema(BaseSchema):
    """Public projection of the authenticated user."""

    id = fields.String(required=True)
    email = fields.Email(required=True)
    name = fields.String(allow_none=True)
    role = fields.String(required=True)


class TokenResponseSchema(BaseSchema):
    """
    Token pair issued by login or refresh.

    ``refresh_token`` is only emitted when a new one was issued; it is
    dropped from the body when the caller delivers it as a cookie.
    """

    access_token = fields.String(required=True)
    token_type = fields.String(dump_default="Bearer")
    expires_in = fields.Integer(required=True)
    refresh_token = fields.String(allow_none=True)
    refresh_expires_in = fields.Integer(allow_none=True)
    session_id = fields.String(required=True)
    user = fields.Nested(UserInfoSchema, required=True)


class SessionInfoSchema(BaseSchema):
    """One entry of a user's session listing."""

    id = fields.String(required=True)
    ip_address = fields.String(allow_none=True)
    user_agent = fields.String(allow_none=True)
    created_at = fields.DateTime(required=True)
    last_used_at = fields.DateTime(allow_none=True)
    expires_at = fields.DateTime(required=True)
    is_current = fields.Boolean(dump_default=False)


class LogoutResponseSchema(BaseSchema):
    """Number of sessions ended by a logout."""

    revoked_sessions = fields.Integer(required=True)


class SessionRecordSchema(BaseSchema):
    """Operator view of a stored session, including revoked ones."""

    id = fields.String(required=True)
    user_id = fields.String(required=True)
    family_id = fields.String(required=True)
    parent_session_id = fields.String(allow_none=True)
    ip_address = fields.String(allow_none=True)
    user_agent = fields.String(allow_none=True)
    last_ip = fields.String(allow_none=True)
    created_at = fields.DateTime(required=True)
    last_used_at = fields.DateTime(allow_none=True)
    expires_at = fields.DateTime(required=True)
    refresh_count = fields.Integer(required=True)
    revoked_at = fields.DateTime(allow_none=True)
    was_rotated = fields.Boolean(required=True)
