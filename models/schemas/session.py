from marshmallow import Schema, fields


class RefreshSessionOutSchema(Schema):
    """Public view of a refresh session; the opaque token itself is never dumped."""
    id = fields.String()
    issued_at = fields.DateTime()
    expires_at = fields.DateTime()
    user_agent = fields.String(allow_none=True)
    ip_address = fields.String(allow_none=True)
