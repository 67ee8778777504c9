from marshmallow import pre_load, validate

from feed_api.extensions.extensions import ma
from feed_api.schemas.post_schema import strip_strings


class SignupSchema(ma.Schema):
    email = ma.Email(required=True)
    name = ma.Str(required=True, validate=validate.Length(min=1))
    password = ma.Str(required=True, validate=validate.Length(min=5))

    @pre_load
    def normalize(self, data, **kwargs):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for key in ("email", "name"):
            if isinstance(data.get(key), str):
                data[key] = data[key].strip()
        if isinstance(data.get("email"), str):
            data["email"] = data["email"].lower()
        return data


class LoginSchema(ma.Schema):
    email = ma.Str(required=True)
    password = ma.Str(required=True)


class StatusSchema(ma.Schema):
    status = ma.Str(required=True, validate=validate.Length(min=1))

    @pre_load
    def strip_fields(self, data, **kwargs):
        return strip_strings(data)
