from flask import current_app
from marshmallow import Schema, fields, pre_load, validates, validate, ValidationError

from models.user import ROLES
from security.credentials import is_strong_password, normalize_email

PASSWORD_RULE = (
    "Password must be at least 8 characters long and contain an upper-case letter, "
    "a lower-case letter, a number and one of @$!%*?&"
)


def allowed_roles():
    """Roles enabled by ALLOWED_ROLES; only those the users table accepts count."""
    configured = current_app.config.get("ALLOWED_ROLES") or ROLES
    return [role.strip() for role in configured if role.strip() in ROLES]


def validate_role(value):
    roles = allowed_roles()
    if value not in roles:
        raise ValidationError(f"Must be one of: {', '.join(roles)}.")


class _EmailNormalizingSchema(Schema):
    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data = dict(data)
            data["email"] = normalize_email(data["email"])
        return data


class RegisterSchema(_EmailNormalizingSchema):
    name = fields.String(required=True, validate=validate.Length(min=1, max=255))
    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True)
    role = fields.String(load_default="user", validate=validate_role)
    admin_key = fields.String(load_default=None, load_only=True)

    @validates("password")
    def validate_password(self, value, **kwargs):
        if not is_strong_password(value):
            raise ValidationError(PASSWORD_RULE)


class LoginSchema(_EmailNormalizingSchema):
    email = fields.String(required=True, validate=validate.Length(min=1))
    password = fields.String(required=True, load_only=True, validate=validate.Length(min=1))


class EmailSchema(_EmailNormalizingSchema):
    email = fields.String(required=True, validate=validate.Length(min=1))


class VerifyCodeSchema(EmailSchema):
    otp = fields.String(required=True, validate=validate.Regexp(r"^\d+$"))


class ResetPasswordSchema(VerifyCodeSchema):
    new_password = fields.String(required=True, load_only=True)

    @validates("new_password")
    def validate_new_password(self, value, **kwargs):
        if not is_strong_password(value):
            raise ValidationError(PASSWORD_RULE)


class RoleUpdateSchema(Schema):
    role = fields.String(required=True, validate=validate_role)


class AccountOutSchema(Schema):
    """Public account view; password hash, refresh token and reset code never leave the server."""
    id = fields.String(allow_none=False)
    name = fields.String(allow_none=True)
    email = fields.String(allow_none=False)
    role = fields.String(allow_none=False)
