from marshmallow import Schema, fields, validate, EXCLUDE

from ..models.enums import GENDERS


class WishSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    child_name = fields.Str(required=True, data_key="childName", validate=validate.Length(min=1, max=120))
    gender = fields.Str(required=True, validate=validate.OneOf(GENDERS))
    content = fields.Str(required=True, validate=validate.Length(min=1))
    reason = fields.Str(required=True, validate=validate.Length(min=1))
    grade = fields.Str(allow_none=True)
    photo_url = fields.Str(allow_none=True, data_key="photoUrl")
    is_published = fields.Bool(data_key="isPublished")


class BatchWishSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    data = fields.List(fields.Nested(WishSchema), required=True, validate=validate.Length(min=1))


class DonorInfoSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    name = fields.Str(required=True, data_key="donorName", validate=validate.Length(min=1, max=120))
    mobile = fields.Str(required=True, data_key="donorMobile", validate=validate.Length(min=1, max=40))
    address = fields.Str(required=True, validate=validate.Length(min=1))
    comment = fields.Str(load_default="")
