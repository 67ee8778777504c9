from marshmallow import pre_load, validate

from feed_api.extensions.extensions import ma


def strip_strings(data):
    if not isinstance(data, dict):
        return data
    return {
        key: value.strip() if isinstance(value, str) else value
        for key, value in data.items()
    }


class CreatorSchema(ma.Schema):
    id = ma.Int()
    name = ma.Str()


class PostSchema(ma.Schema):
    id = ma.Int()
    title = ma.Str()
    content = ma.Str()
    image_url = ma.Str()
    creator = ma.Nested(CreatorSchema)
    created_at = ma.DateTime()
    updated_at = ma.DateTime()


class PostInputSchema(ma.Schema):
    title = ma.Str(required=True, validate=validate.Length(min=5))
    content = ma.Str(required=True, validate=validate.Length(min=5))

    @pre_load
    def strip_fields(self, data, **kwargs):
        return strip_strings(data)
