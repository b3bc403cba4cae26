from marshmallow import EXCLUDE, Schema, fields, pre_load

from models.account import normalize_email


class RegisterSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    email = fields.Email(required=True)
    name = fields.String(required=True)
    password = fields.String(required=True, load_only=True)
    avatar = fields.String(allow_none=True, load_default=None)

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data["email"] = normalize_email(data["email"])
        return data


class LoginSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    email = fields.String(required=True)
    password = fields.String(required=True, load_only=True)

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data["email"] = normalize_email(data["email"])
        return data


class RefreshSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    user_id = fields.UUID(required=True, data_key="userId")
    refresh_token = fields.String(required=True, data_key="refreshToken")


class AuthUserSchema(Schema):
    """Public profile. Hashes and secrets are never part of it."""
    id = fields.String()
    email = fields.String()
    name = fields.String()
    avatar = fields.String(allow_none=True)


class TokenRefreshResponseSchema(Schema):
    access_token = fields.String(data_key="accessToken")
    refresh_token = fields.String(data_key="refreshToken")
    expires_in = fields.Integer(data_key="expiresIn")


class AuthResponseSchema(TokenRefreshResponseSchema):
    user = fields.Nested(AuthUserSchema)
