"""Schemas for result declaration and lookup."""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, fields, pre_load, validate


class DeclareResultSchema(Schema):
    """Validate the manual declare-result payload."""

    market_id = fields.Integer(required=True, data_key="marketId", validate=validate.Range(min=1))
    result_type = fields.String(
        required=True,
        data_key="resultType",
        validate=validate.OneOf(["open", "close"], error='Result type must be either "open" or "close"'),
    )
    result_number = fields.String(
        required=True,
        data_key="resultNumber",
        validate=validate.Regexp(r"^[0-9]{3}$", error="Result number must be a 3-digit string (000-999)"),
    )
    target_date = fields.Date(required=True, data_key="targetDate")
    declared_by = fields.String(required=False, load_default=None, data_key="declaredBy")

    @pre_load
    def _stringify_number(self, data, **kwargs):  # type: ignore[no-untyped-def]
        # Admin clients sometimes send the panna as a JSON number.
        if isinstance(data, dict) and isinstance(data.get("resultNumber"), int):
            data = {**data, "resultNumber": str(data["resultNumber"])}
        return data


class ResultQuerySchema(Schema):
    class Meta:
        unknown = EXCLUDE

    date = fields.Date(required=False, load_default=None)


class MarketDayResultSchema(Schema):
    """Serialize a MarketDayResult row (or the empty placeholder)."""

    market_id = fields.Integer(data_key="marketId")
    result_date = fields.Date(data_key="resultDate")
    open = fields.String(allow_none=True)
    main = fields.String(allow_none=True)
    close = fields.String(allow_none=True)
    open_declared_at = fields.DateTime(allow_none=True, data_key="openDeclaredAt")
    close_declared_at = fields.DateTime(allow_none=True, data_key="closeDeclaredAt")
    declared_by = fields.String(allow_none=True, data_key="declaredBy")
