"""Schemas for bets."""

from __future__ import annotations

from marshmallow import Schema, fields, validate


class BetCreateSchema(Schema):
    market_id = fields.Integer(required=True, data_key="marketId", validate=validate.Range(min=1))
    user_id = fields.String(required=True, data_key="userId", validate=validate.Length(min=1, max=64))
    bet_type = fields.String(required=True, data_key="betType", validate=validate.OneOf(["open", "close", "both"]))
    selected_numbers = fields.Dict(
        keys=fields.String(),
        values=fields.Float(),
        required=True,
        data_key="selectedNumbers",
        validate=validate.Length(min=1),
    )
    bet_date = fields.Date(required=False, load_default=None, data_key="betDate")


class BetSchema(Schema):
    id = fields.Integer()
    market_id = fields.Integer(data_key="marketId")
    user_id = fields.String(data_key="userId")
    bet_type = fields.String(data_key="betType")
    bet_date = fields.Date(data_key="betDate")
    amount = fields.Float()
    selected_numbers = fields.Dict(keys=fields.String(), values=fields.Float(), data_key="selectedNumbers")
    result = fields.String()
    win_amount = fields.Float(data_key="winAmount")
    market_result = fields.String(allow_none=True, data_key="marketResult")
    winning_mode = fields.String(allow_none=True, data_key="winningMode")
    settled_at = fields.DateTime(allow_none=True, data_key="settledAt")
