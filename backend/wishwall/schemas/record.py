from marshmallow import Schema, fields, validate, EXCLUDE

from ..models.enums import RECORD_STATUSES


class TransitionSchema(Schema):
    """Body of PUT /records/<id>/status. Stage fields are all optional here; the engine
    decides which ones the target status requires."""

    class Meta:
        unknown = EXCLUDE

    status = fields.Str(required=True, validate=validate.OneOf(RECORD_STATUSES))
    shipping_number = fields.Str(data_key="shippingNumber")
    confirmation_message = fields.Str(data_key="confirmationMessage")
    confirmation_photos = fields.Str(data_key="confirmationPhotos")
    delivery_number = fields.Str(data_key="deliveryNumber")
    receipt_message = fields.Str(data_key="receiptMessage")
    receipt_photos = fields.Str(data_key="receiptPhotos")
    platform_gift_message = fields.Str(data_key="platformGiftMessage")
    platform_gift_photos = fields.Str(data_key="platformGiftPhotos")
    owner_gift_message = fields.Str(data_key="ownerGiftMessage")
    owner_gift_photos = fields.Str(data_key="ownerGiftPhotos")


class ShippingInfoSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    name = fields.Str(data_key="donorName", validate=validate.Length(min=1, max=120))
    mobile = fields.Str(data_key="donorMobile", validate=validate.Length(min=1, max=40))
    address = fields.Str(validate=validate.Length(min=1))
