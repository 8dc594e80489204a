from marshmallow import EXCLUDE, ValidationError, fields, validate, validates_schema

from leaderboard_cycles.extensions import ma

NAME_FIELDS = ("name_en", "name_hr")
SCHEDULE_FIELDS = ("start_date", "end_date", "number_of_winners", "guarantee_first_place")


class CycleCreateSchema(ma.Schema):
    class Meta:
        unknown = EXCLUDE

    name_en = fields.String(required=True, validate=validate.Length(min=1, max=255))
    name_hr = fields.String(required=True, validate=validate.Length(min=1, max=255))
    description_en = fields.String(allow_none=True)
    description_hr = fields.String(allow_none=True)
    header_image_url = fields.String(allow_none=True, validate=validate.Length(max=1024))
    start_date = fields.DateTime(required=True)
    end_date = fields.DateTime(required=True)
    number_of_winners = fields.Integer(
        load_default=1,
        validate=validate.Range(min=1, error="Number of winners must be at least 1"),
    )
    guarantee_first_place = fields.Boolean(load_default=False)


class CycleUpdateSchema(ma.Schema):
    class Meta:
        unknown = EXCLUDE

    name_en = fields.String(validate=validate.Length(min=1, max=255))
    name_hr = fields.String(validate=validate.Length(min=1, max=255))
    description_en = fields.String(allow_none=True)
    description_hr = fields.String(allow_none=True)
    header_image_url = fields.String(allow_none=True, validate=validate.Length(max=1024))
    start_date = fields.DateTime()
    end_date = fields.DateTime()
    number_of_winners = fields.Integer(
        validate=validate.Range(min=1, error="Number of winners must be at least 1"),
    )
    guarantee_first_place = fields.Boolean()

    @validates_schema
    def validate_names_together(self, data, **kwargs):
        given = [name for name in NAME_FIELDS if name in data]
        if len(given) == 1:
            raise ValidationError("Both name_en and name_hr must be provided together", "name_en")


class CycleListQuerySchema(ma.Schema):
    class Meta:
        unknown = EXCLUDE

    status = fields.String(validate=validate.OneOf(("scheduled", "active", "completed", "cancelled")))
    date_from = fields.DateTime()
    date_to = fields.DateTime()
    page = fields.Integer(load_default=1)
    limit = fields.Integer(load_default=20)
